"""Mock provider for testing."""

from __future__ import annotations

from chatsync.providers.models import ReplyRequest, ReplyResponse


class MockProvider:
    """Mock provider for running without API calls.

    Echoes the latest user turn so conversations stay informative in mock mode.
    """

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        """Return a deterministic mock reply."""
        text = next(
            (m.content for m in reversed(request.messages) if m.role == "user"), ""
        )
        return ReplyResponse(
            text=f"echo: {text[:100]}",
            usage={"input_tokens": 10, "total_tokens": 20},
        )
