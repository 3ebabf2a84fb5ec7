"""Reply providers."""

from __future__ import annotations

from chatsync.providers.base import ReplyProvider
from chatsync.providers.models import Message, ReplyRequest, ReplyResponse

__all__ = ["Message", "ReplyProvider", "ReplyRequest", "ReplyResponse"]
