"""
Shared fixtures: fresh settings and no ambient completion client per test.
"""
import asyncio
from datetime import date

import pytest

from taskrank.core.config import build_settings, reset_settings
from taskrank.services.ai.llm_client import ModelContext, reset_completion_client

ENV_VARS = (
    "TASKRANK_CONFIG_PATH",
    "TASKRANK_AI_ENABLED",
    "LLM_API_BASE",
    "LLM_API_KEY",
    "LLM_MODEL",
    "LLM_TIMEOUT_SECONDS",
)

REFERENCE_DATE = date(2025, 1, 20)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_completion_client()
    yield
    reset_settings()
    reset_completion_client()


@pytest.fixture
def settings():
    return build_settings()


@pytest.fixture
def reference_date():
    return REFERENCE_DATE


@pytest.fixture
def model_context():
    return ModelContext(provider="openai", model="test-model", temperature=0.0, max_tokens=256)


class StubCompletionClient:
    """Completion client returning canned answers and recording every call."""

    def __init__(self, answers=None, error=None, delay=None):
        self.answers = list(answers or [])
        self.error = error
        self.delay = delay
        self.calls = []

    async def complete(self, system_instruction, user_content, response_shape_hint, context, agent="completion"):
        self.calls.append({
            "system_instruction": system_instruction,
            "user_content": user_content,
            "response_shape_hint": response_shape_hint,
            "context": context,
            "agent": agent,
        })
        if self.delay is not None:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]


@pytest.fixture
def stub_client():
    """Factory for StubCompletionClient instances."""
    return StubCompletionClient
