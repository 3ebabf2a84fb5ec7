"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, automatic API test
skipping, and the shared engine doubles. Environment fixtures are autouse.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os

import pytest

from chatsync.engine import ChatEngine
from chatsync.providers.models import ReplyRequest, ReplyResponse
from chatsync.replies import ReplyService
from chatsync.retry import RetryPolicy
from chatsync.slots import MemorySlots
from chatsync.store.memory import MemoryStore

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeReplyProvider:
    """Reply provider test double.

    Answers ``ok:<latest user turn>`` and records every request.
    """

    generate_calls: int = 0
    requests: list[ReplyRequest] = field(default_factory=list)

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        self.generate_calls += 1
        self.requests.append(request)
        prompt = next(
            (m.content for m in reversed(request.messages) if m.role == "user"), ""
        )
        return ReplyResponse(text=f"ok:{prompt}", usage={"total_tokens": 1})


def make_replies(provider, **kwargs) -> ReplyService:
    """ReplyService without retry sleeps."""
    kwargs.setdefault("retry", RetryPolicy(max_attempts=1, jitter=False))
    return ReplyService(provider, model="test-model", provider_name="fake", **kwargs)


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Clear provider API key variables to prevent test pollution.

    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return
    for key in list(os.environ.keys()):
        if key.startswith(("ANTHROPIC_", "GEMINI_", "OPENAI_")):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if os.getenv("ENABLE_API_TESTS"):
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def fake_provider() -> FakeReplyProvider:
    return FakeReplyProvider()


@pytest.fixture
def engine(store: MemoryStore, fake_provider: FakeReplyProvider) -> ChatEngine:
    return ChatEngine(store, make_replies(fake_provider), MemorySlots())


@pytest.fixture
def anthropic_api_key():
    """Return ANTHROPIC_API_KEY or skip the test if unavailable."""
    key = os.getenv("ANTHROPIC_API_KEY")
    if not key:
        pytest.skip("ANTHROPIC_API_KEY not set")
    return key
