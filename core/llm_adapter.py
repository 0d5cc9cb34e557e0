"""
LLM Adapter for Momentum.

Provides a unified interface for talking to the remote text-generation
service. Supports: Google Gemini, OpenAI-compatible APIs, Ollama (local),
and a rule-based offline mode.

An adapter either returns an LLMResponse or raises one of the LLMError
family; the AI gateway turns both failure shapes into fallbacks.
"""
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx
import yaml

from core.config_manager import CONFIG_DIR
from core.exceptions import (
    ConfigError,
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from core.logger import get_logger

logger = get_logger("llm_adapter")

MODEL_CONFIG_PATH = CONFIG_DIR / "model.yaml"
LOCAL_MODEL_CONFIG_PATH = CONFIG_DIR / "local_model.yaml"


@dataclass
class LLMResponse:
    """Structured response from LLM."""
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class LLMProvider(Protocol):
    """Protocol defining the LLM provider interface."""

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Generate a completion, optionally constrained to a JSON schema."""
        ...

    def get_model_name(self) -> str:
        ...


class BaseLLMAdapter(ABC):
    """Base class for LLM adapters."""

    provider = "unknown"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.model_name = config.get("model_name", "unknown")
        self.timeout = float(config.get("timeout", 60.0))
        self.transport = transport

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        pass

    def get_model_name(self) -> str:
        return self.model_name

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def _post(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        endpoint: Optional[str] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload and map transport failures onto the LLMError family."""
        endpoint = endpoint or url
        try:
            with self._client() as client:
                response = client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise LLMAuthError(self.provider, self.model_name, endpoint) from e
            if status == 429:
                retry_after = e.response.headers.get("retry-after")
                raise LLMRateLimitError(
                    self.provider,
                    self.model_name,
                    endpoint,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
                ) from e
            try:
                error_detail = e.response.text
            except httpx.ResponseNotRead:
                error_detail = "No details"
            raise LLMError(
                message=f"HTTP error: {status} - {error_detail[:500]}",
                provider=self.provider,
                model_name=self.model_name,
                endpoint=endpoint
            ) from e
        except httpx.ConnectError as e:
            raise LLMConnectionError(self.provider, self.model_name, endpoint) from e
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(
                self.provider, self.model_name, endpoint, timeout_seconds=self.timeout
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(
                message=f"Request failed: {e}",
                provider=self.provider,
                model_name=self.model_name,
                endpoint=endpoint
            ) from e


class GeminiAdapter(BaseLLMAdapter):
    """Adapter for the Google Gemini REST API (generateContent)."""

    provider = "gemini"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        super().__init__(config, transport)
        self.api_key = config.get("api_key") or os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
        self.base_url = config.get("base_url", "https://generativelanguage.googleapis.com/v1beta")
        self.model_name = config.get("model_name", "gemini-2.5-flash")

        if not self.api_key:
            raise ConfigError(
                "Gemini API key not found. Set GEMINI_API_KEY or add 'api_key' to config/model.yaml",
                config_path=str(MODEL_CONFIG_PATH)
            )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = to_gemini_schema(response_schema)

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        url = f"{self.base_url}/models/{self.model_name}:generateContent"
        data = self._post(
            url,
            payload,
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
            endpoint=self.base_url
        )

        candidates = data.get("candidates") or []
        if not candidates:
            return LLMResponse(content="", model=self.model_name, error="No candidates in response")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts)
        usage = data.get("usageMetadata")
        return LLMResponse(
            content=text,
            model=data.get("modelVersion", self.model_name),
            usage={
                "prompt_tokens": usage.get("promptTokenCount", 0),
                "completion_tokens": usage.get("candidatesTokenCount", 0)
            } if usage else None
        )


class OpenAIAdapter(BaseLLMAdapter):
    """Adapter for OpenAI API (also compatible with other OpenAI-compatible APIs)."""

    provider = "openai"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        super().__init__(config, transport)
        self.api_key = config.get("api_key") or os.environ.get("OPENAI_API_KEY")
        self.base_url = config.get("base_url", "https://api.openai.com/v1")
        self.model_name = config.get("model_name", "gpt-4o-mini")

        if not self.api_key:
            raise ConfigError(
                "OpenAI API key not found. Set OPENAI_API_KEY or add 'api_key' to config/model.yaml",
                config_path=str(MODEL_CONFIG_PATH)
            )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens
        }
        if response_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": response_schema},
            }

        data = self._post(
            f"{self.base_url}/chat/completions",
            payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            },
            endpoint=self.base_url
        )
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return LLMResponse(content="", model=self.model_name, error="Malformed chat completion")
        return LLMResponse(
            content=content,
            model=data.get("model", self.model_name),
            usage=data.get("usage")
        )


class OllamaAdapter(BaseLLMAdapter):
    """Adapter for local Ollama models."""

    provider = "ollama"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        config = {"timeout": 120.0, **config}
        super().__init__(config, transport)
        self.base_url = config.get("base_url", "http://localhost:11434")
        self.model_name = config.get("model_name", "qwen2.5:7b")

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        payload: Dict[str, Any] = {
            "model": self.model_name,
            "prompt": full_prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens
            }
        }
        if response_schema is not None:
            payload["format"] = response_schema

        data = self._post(f"{self.base_url}/api/generate", payload, endpoint=self.base_url)
        return LLMResponse(
            content=data.get("response", ""),
            model=data.get("model", self.model_name),
            usage={
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0)
            }
        )


class RuleBasedAdapter(BaseLLMAdapter):
    """
    Offline adapter used when no model is configured.
    Every call reports an error so callers take their fallback path.
    """

    provider = "rule_based"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        super().__init__(config, transport)
        self.model_name = "rule_based"

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        return LLMResponse(
            content="",
            model=self.model_name,
            usage={"prompt_tokens": 0, "completion_tokens": 0},
            error="No LLM configured (rule-based mode)"
        )


# JSON-schema keys Gemini's OpenAPI subset does not accept
_GEMINI_DROPPED_KEYS = {"title", "additionalProperties", "default", "$schema"}


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain JSON schema into the OpenAPI-style schema Gemini expects."""
    result: Dict[str, Any] = {}
    for key, value in schema.items():
        if key in _GEMINI_DROPPED_KEYS:
            continue
        if key == "type" and isinstance(value, str):
            result[key] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            result[key] = {name: to_gemini_schema(sub) for name, sub in value.items()}
        elif key == "items" and isinstance(value, dict):
            result[key] = to_gemini_schema(value)
        else:
            result[key] = value
    return result


def load_model_config(profile_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Load model configuration from YAML.
    Priority: local_model.yaml > model.yaml

    Args:
        profile_name: Optional profile name. If None, uses active_profile from config.

    Returns:
        Configuration dict for the specified or active profile.

    Note:
        Supports ${ENV_VAR} syntax for environment variable expansion.
    """
    raw_config: Dict[str, Any] = {}

    for path in (LOCAL_MODEL_CONFIG_PATH, MODEL_CONFIG_PATH):
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML: {e}", config_path=str(path)) from e
            break

    if "profiles" in raw_config:
        profiles = raw_config["profiles"] or {}
        active_profile = profile_name or raw_config.get("active_profile", "offline")

        if active_profile not in profiles:
            logger.warning("Profile '%s' not found, using rule-based mode", active_profile)
            return {"provider": "rule_based", "active_profile": active_profile}

        config = dict(profiles[active_profile] or {})
        config.setdefault("active_profile", active_profile)
        return _expand_env_vars(config)

    # flat layout
    if raw_config:
        return _expand_env_vars(raw_config)

    return {"provider": "rule_based"}


def _expand_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand ${VAR} placeholders in config values with environment variables.

    An unset variable leaves the key out, so the adapter's own environment
    lookup gets a chance.
    """
    result: Dict[str, Any] = {}
    pattern = re.compile(r'^\$\{([^}]+)\}$')

    for key, value in config.items():
        if isinstance(value, str):
            match = pattern.match(value)
            if match:
                env_value = os.environ.get(match.group(1))
                if env_value:
                    result[key] = env_value
            else:
                result[key] = value
        elif isinstance(value, dict):
            result[key] = _expand_env_vars(value)
        else:
            result[key] = value

    return result


ADAPTERS = {
    "gemini": GeminiAdapter,
    "openai": OpenAIAdapter,
    "ollama": OllamaAdapter,
    "rule_based": RuleBasedAdapter,
}


def create_llm_adapter(
    config: Optional[Dict[str, Any]] = None,
    profile_name: Optional[str] = None,
) -> BaseLLMAdapter:
    """
    Factory function to create the appropriate LLM adapter.

    Args:
        config: Optional config dict. If None, loads from model.yaml.
        profile_name: Optional profile name. Only used when config is None.
    """
    if config is None:
        config = load_model_config(profile_name)

    provider = str(config.get("provider", "rule_based")).lower()
    adapter_cls = ADAPTERS.get(provider)
    if adapter_cls is None:
        raise ConfigError(
            f"Unknown LLM provider '{provider}' (profile: {profile_name})",
            config_path=str(MODEL_CONFIG_PATH)
        )
    return adapter_cls(config)


# profile name -> adapter instance
_llm_registry: Dict[str, BaseLLMAdapter] = {}


def get_llm(profile_name: Optional[str] = None) -> BaseLLMAdapter:
    """
    Get or create the adapter for a profile (cached).

    If profile_name is None, the active_profile from config is used.
    A profile whose adapter cannot be built (missing key, bad provider)
    degrades to rule-based mode.
    """
    config = load_model_config(profile_name)
    target_profile = profile_name or config.get("active_profile", "default")

    if target_profile not in _llm_registry:
        logger.info("Initializing LLM profile: %s", target_profile)
        try:
            _llm_registry[target_profile] = create_llm_adapter(config, target_profile)
        except ConfigError as e:
            logger.warning("%s; falling back to rule-based mode", e.get_user_message())
            _llm_registry[target_profile] = RuleBasedAdapter(config)

    return _llm_registry[target_profile]


def reset_llm() -> None:
    """Reset the adapter registry (useful for tests or config changes)."""
    _llm_registry.clear()
