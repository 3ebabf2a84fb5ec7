"""Process-local, restart-surviving key/value slots.

Two slots are used by the engine:
- ``pendingDrafts``: turns submitted before authentication, in submission order.
- ``activeConversation``: the conversation a reload should resume.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from chatsync.errors import StoreUnavailableError
from chatsync.types import ActiveConversation, PendingDraft

if TYPE_CHECKING:
    import os

logger = logging.getLogger(__name__)

PENDING_DRAFTS = "pendingDrafts"
ACTIVE_CONVERSATION = "activeConversation"


class SlotStorage(Protocol):
    """Minimal key/value protocol behind the slots."""

    def get(self, key: str) -> Any | None:
        """Return the stored value or None."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...


class MemorySlots:
    """Slots that live as long as the process."""

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        """Return a copy of the stored value or None."""
        value = self._data.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        """Store a value (round-tripped through JSON like the file backend)."""
        self._data[key] = json.loads(json.dumps(value))

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        self._data.pop(key, None)


class JSONSlots:
    """Slots persisted to a JSON file, surviving process restarts."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Initialize storage pointing at a JSON file path."""
        self._path = Path(path)

    def get(self, key: str) -> Any | None:
        """Return the stored value or None."""
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        """Store a value and persist immediately."""
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        """Remove a key and persist immediately."""
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            result = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreUnavailableError(
                f"Could not read slot file {self._path}"
            ) from e
        return result if isinstance(result, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self._path)


class DraftHolding:
    """Transient holding for drafts submitted while unauthenticated."""

    def __init__(self, storage: SlotStorage) -> None:
        """Wrap the given slot storage."""
        self._storage = storage

    def add(self, draft: PendingDraft) -> None:
        """Append a draft, keeping submission order."""
        held = self._raw()
        held.append({"content": draft.content})
        self._storage.set(PENDING_DRAFTS, held)

    def peek(self) -> list[PendingDraft]:
        """Return held drafts without consuming them."""
        return [PendingDraft(content=str(d["content"])) for d in self._raw()]

    def take_all(self) -> list[PendingDraft]:
        """Read every held draft exactly once and clear the slot."""
        drafts = self.peek()
        self._storage.delete(PENDING_DRAFTS)
        if drafts:
            logger.debug("Handed off %d pending draft(s)", len(drafts))
        return drafts

    def _raw(self) -> list[dict[str, Any]]:
        value = self._storage.get(PENDING_DRAFTS)
        if not isinstance(value, list):
            return []
        return [d for d in value if isinstance(d, dict) and "content" in d]


class ActiveConversationSlot:
    """Remembers which conversation the view was showing."""

    def __init__(self, storage: SlotStorage) -> None:
        """Wrap the given slot storage."""
        self._storage = storage

    def save(self, active: ActiveConversation) -> None:
        """Record the active conversation."""
        self._storage.set(
            ACTIVE_CONVERSATION,
            {"conversationId": active.conversation_id, "topicText": active.topic_text},
        )

    def load(self) -> ActiveConversation | None:
        """Return the recorded conversation, or None."""
        value = self._storage.get(ACTIVE_CONVERSATION)
        if not isinstance(value, dict) or not value.get("conversationId"):
            return None
        topic = value.get("topicText")
        return ActiveConversation(
            conversation_id=str(value["conversationId"]),
            topic_text=str(topic) if topic is not None else None,
        )

    def clear(self) -> None:
        """Forget the active conversation."""
        self._storage.delete(ACTIVE_CONVERSATION)
