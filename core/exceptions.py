"""
Momentum exception definitions.

Hierarchy of the errors raised inside the system:
- MomentumError: base class for every known error
- ConfigError: configuration file errors
- LLMError: model invocation errors (connection, auth, timeout, rate limit)
- ResponseFormatError: model replied, but not with what the schema asked for

None of the LLM errors ever leave the AI gateway; they are converted to
fallback values there.
"""
from typing import Optional


class MomentumError(Exception):
    """Momentum base exception.

    Every known error in the system inherits from this class.
    Catching it handles all expected failure cases.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: error description
            hint: suggestion for the user
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return a user-friendly error message."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ConfigError(MomentumError):
    """Configuration file error.

    Raised when a config file is missing, malformed or has illegal content.
    """

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class LLMError(MomentumError):
    """Base class for LLM invocation errors.

    Carries the call context (provider, model, endpoint).
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        self.provider = provider or "unknown"
        self.model_name = model_name or "unknown"
        self.endpoint = endpoint

        context = f"[{self.provider}/{self.model_name}]"
        full_message = f"{context} {message}"

        super().__init__(full_message)

    def get_user_message(self) -> str:
        base = f"Model call failed ({self.provider}/{self.model_name}): {self.message}"
        if self.hint:
            return f"{base}\nHint: {self.hint}"
        return base


class LLMConnectionError(LLMError):
    """Cannot reach the LLM service."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("Cannot connect to the model service", provider, model_name, endpoint)

        if provider == "ollama":
            self.hint = "Make sure Ollama is running (ollama serve)"
        elif provider in ("openai", "gemini"):
            self.hint = "Check the network connection or the API endpoint"
        else:
            self.hint = "Check that the model service is running"


class LLMAuthError(LLMError):
    """LLM authentication failed."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("Model authentication failed", provider, model_name, endpoint)
        self.hint = "Check that the API key is configured correctly"


class LLMTimeoutError(LLMError):
    """LLM call timed out."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        message = "Model call timed out"
        if timeout_seconds:
            message = f"Model call timed out ({timeout_seconds}s)"
        super().__init__(message, provider, model_name, endpoint)
        self.timeout_seconds = timeout_seconds
        self.hint = "The network or the model may be slow, try again later"


class LLMRateLimitError(LLMError):
    """LLM request rate exceeded."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__("Request rate exceeded", provider, model_name, endpoint)
        self.retry_after = retry_after
        if retry_after:
            self.hint = f"Retry in {retry_after} seconds"
        else:
            self.hint = "Try again later"


class ResponseFormatError(MomentumError):
    """The model answered, but the payload is empty, unparsable or off-schema."""

    def __init__(self, message: str, raw_content: Optional[str] = None):
        super().__init__(message, hint="The model reply did not match the requested schema")
        self.raw_content = raw_content
