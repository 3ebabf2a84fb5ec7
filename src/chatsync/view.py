"""The in-memory, ordered turn list shown to the caller.

The view is never the authority. Every mutation path ends in a fresh read of
the store, and the result replaces the whole list. Snapshots carry the
store's version so a slow read that lands after a newer one is discarded
instead of briefly redisplaying older state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
import uuid

from chatsync.appender import read_turns
from chatsync.types import Turn, TurnSnapshot, utcnow_iso

if TYPE_CHECKING:
    from chatsync.store.base import StoreClient

logger = logging.getLogger(__name__)

APOLOGY_TEXT = (
    "I apologize, but I'm having trouble responding right now. Please try again."
)


class ReconciliationView:
    """Cache of one conversation's turns, invalidated on every mutation."""

    def __init__(self, store: StoreClient, conversation_id: str) -> None:
        """Bind the view to one conversation; it starts empty until refreshed."""
        self._store = store
        self.conversation_id = conversation_id
        self._snapshot = TurnSnapshot(conversation_id=conversation_id)
        self._apology: Turn | None = None

    @property
    def snapshot(self) -> TurnSnapshot:
        """The stored turns currently shown (without the transient apology)."""
        return self._snapshot

    @property
    def version(self) -> int:
        """Store version of the snapshot currently shown."""
        return self._snapshot.version

    def current_turns(self) -> list[Turn]:
        """Return the ordered turns to display, including any transient apology."""
        turns = list(self._snapshot.turns)
        if self._apology is not None:
            turns.append(self._apology)
        return turns

    def apply(self, snapshot: TurnSnapshot) -> bool:
        """Replace the shown list with ``snapshot`` unless it is stale.

        Returns:
            True when the snapshot was applied, False when discarded.
        """
        if snapshot.conversation_id != self.conversation_id:
            raise ValueError(
                f"Snapshot for {snapshot.conversation_id!r} applied to view of "
                f"{self.conversation_id!r}"
            )
        if snapshot.version < self._snapshot.version:
            logger.debug(
                "Discarding stale snapshot v%d (showing v%d) for %s",
                snapshot.version,
                self._snapshot.version,
                self.conversation_id,
            )
            return False
        self._snapshot = snapshot
        self._apology = None
        return True

    async def refresh(self) -> list[Turn]:
        """Re-read the conversation from the store and apply it."""
        self.apply(await read_turns(self._store, self.conversation_id))
        return self.current_turns()

    def show_apology(self) -> Turn:
        """Show the reply-failure apology once; it is never persisted."""
        if self._apology is None:
            self._apology = Turn(
                id=f"transient-{uuid.uuid4().hex}",
                conversation_id=self.conversation_id,
                role="assistant",
                content=APOLOGY_TEXT,
                created_at=utcnow_iso(),
                transient=True,
            )
        return self._apology
