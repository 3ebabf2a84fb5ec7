"""chatsync: persisted AI conversations kept consistent with a shared store.

Public API:
    - build_engine(): Build a ChatEngine from a Config
    - ChatEngine: open, resume and list conversations for a session
    - ChatSession: submit turns to one conversation and read its view
    - SessionBridge: promote drafts written before sign-in
    - Config: Configuration dataclass
"""

from __future__ import annotations

import logging

from chatsync.appender import MessageAppender
from chatsync.config import Config
from chatsync.engine import ChatEngine, build_engine
from chatsync.errors import (
    ChatSyncError,
    ConfigurationError,
    ConsistencyViolationError,
    DuplicateKeyError,
    RateLimitError,
    ReplyError,
    StoreError,
    StoreUnavailableError,
)
from chatsync.pipeline import ChatSession
from chatsync.resolver import ConversationResolver
from chatsync.retry import RetryPolicy
from chatsync.session import LocalAuthGateway, SessionBridge, SessionState
from chatsync.slots import DraftHolding
from chatsync.types import AuthSession, Conversation, Turn, TurnSnapshot
from chatsync.view import ReconciliationView

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("chatsync")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("chatsync").addHandler(logging.NullHandler())

__all__ = [
    "AuthSession",
    "ChatEngine",
    "ChatSession",
    "ChatSyncError",
    "Config",
    "ConfigurationError",
    "ConsistencyViolationError",
    "Conversation",
    "ConversationResolver",
    "DraftHolding",
    "DuplicateKeyError",
    "LocalAuthGateway",
    "MessageAppender",
    "RateLimitError",
    "ReconciliationView",
    "ReplyError",
    "RetryPolicy",
    "SessionBridge",
    "SessionState",
    "StoreError",
    "StoreUnavailableError",
    "Turn",
    "TurnSnapshot",
    "build_engine",
]
