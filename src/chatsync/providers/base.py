"""Provider protocol: minimal interface for reply providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from chatsync.providers.models import ReplyRequest, ReplyResponse


@runtime_checkable
class ReplyProvider(Protocol):
    """Stateless mapping from an ordered turn sequence to one reply."""

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        """Generate the next assistant turn."""
        ...
