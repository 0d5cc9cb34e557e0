import json
import os
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests away from any real model profile or user log directory.
os.environ.setdefault("MOMENTUM_CONFIG_DIR", str(PROJECT_ROOT / "tests" / "_config"))
os.environ.setdefault("MOMENTUM_LOGS_DIR", str(PROJECT_ROOT / "tests" / "_logs"))

from core.exceptions import LLMConnectionError  # noqa: E402
from core.llm_adapter import BaseLLMAdapter, LLMResponse  # noqa: E402
from core.models import Level, Task, TaskCategory  # noqa: E402


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLLM(BaseLLMAdapter):
    """
    Scripted adapter. Each queued item is consumed by one generate() call:
    a dict/list is sent back as JSON text, a str as-is, an Exception is raised,
    and an LLMResponse is returned unchanged.
    """

    provider = "fake"

    def __init__(self, *replies):
        super().__init__({"model_name": "fake-model"})
        self.replies = list(replies)
        self.calls = []

    def queue(self, *replies) -> "FakeLLM":
        self.replies.extend(replies)
        return self

    def generate(self, prompt, system_prompt=None, temperature=0.7, max_tokens=1000, response_schema=None):
        self.calls.append({"prompt": prompt, "temperature": temperature, "schema": response_schema})
        if not self.replies:
            raise LLMConnectionError(self.provider, self.model_name, "fake://")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, LLMResponse):
            return reply
        if isinstance(reply, (dict, list)):
            reply = json.dumps(reply)
        return LLMResponse(content=reply, model=self.model_name)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_llm():
    return FakeLLM()


def make_task(task_id: str, title: str = None, minutes: int = 10, **kwargs) -> Task:
    return Task(
        id=task_id,
        title=title or f"task {task_id}",
        category=kwargs.pop("category", TaskCategory.HOME),
        estimated_minutes=minutes,
        energy_level=kwargs.pop("energy_level", Level.MEDIUM),
        **kwargs,
    )
