"""Store client boundary and bundled implementations."""

from __future__ import annotations

from chatsync.store.base import UNIQUE_CONSTRAINTS, StoreClient
from chatsync.store.json_store import JSONStore
from chatsync.store.memory import MemoryStore

__all__ = ["UNIQUE_CONSTRAINTS", "JSONStore", "MemoryStore", "StoreClient"]
