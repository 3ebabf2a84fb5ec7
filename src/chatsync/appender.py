"""Idempotent turn appends with convergence on the stored turn list.

``MessageAppender.append`` is safe under concurrent duplicate calls: the
pre-check is only a fast path, the store's unique constraints are the actual
guarantee, and every call ends by re-reading the full ordered list so all
callers converge on the same view regardless of who won the write.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from chatsync.errors import (
    ChatSyncError,
    ConsistencyViolationError,
    DuplicateKeyError,
)
from chatsync.types import (
    CONVERSATIONS,
    MESSAGES,
    ROLES,
    Role,
    TurnSnapshot,
    utcnow_iso,
)

if TYPE_CHECKING:
    from chatsync.store.base import StoreClient

logger = logging.getLogger(__name__)


async def read_turns(store: StoreClient, conversation_id: str) -> TurnSnapshot:
    """Read every turn of a conversation in canonical (creation) order."""
    records = await store.find_many(
        MESSAGES,
        {"conversation_id": conversation_id},
        order=(("created_at", "asc"),),
    )
    return TurnSnapshot.from_records(conversation_id, records)


class MessageAppender:
    """Ensure exactly one durable copy of a turn exists."""

    def __init__(self, store: StoreClient) -> None:
        """Initialize with the store the turns live in."""
        self._store = store

    async def append(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        *,
        submission_key: str = "",
        reply_to: str | None = None,
    ) -> TurnSnapshot:
        """Append a turn unless an identical one is stored; return the converged list.

        Duplicates are identified by ``(role, content, submission_key)`` within
        the conversation, or by ``reply_to`` when given (one answer per user
        turn). With the default empty ``submission_key`` two submissions of
        the same text collapse into one turn; pass a per-submission token to
        keep them apart.

        Returns:
            The full ordered turn list read back from the store. Callers
            replace their local list with it rather than patching.

        Raises:
            ValueError: ``role`` is not a known role or ``content`` is empty.
            StoreError: A store call failed. ``partial`` is True when this
                call had already written the turn.
            ConsistencyViolationError: The store reported or skipped the write
                but the turn is not in the read-back list.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        if not content.strip():
            raise ValueError("Turn content must not be empty")

        key: dict[str, Any] = {"conversation_id": conversation_id}
        if reply_to is not None:
            key["reply_to"] = reply_to
        else:
            key.update(role=role, content=content, submission_key=submission_key)

        existing = await self._store.find_one(MESSAGES, key)
        written = False
        try:
            if existing is not None:
                logger.debug(
                    "Turn already stored in %s (role=%s); skipping write",
                    conversation_id,
                    role,
                )
            else:
                record = await self._create(
                    conversation_id,
                    role,
                    content,
                    submission_key=submission_key,
                    reply_to=reply_to,
                )
                written = record is not None
                if record is not None:
                    await self._store.update_record(
                        CONVERSATIONS,
                        conversation_id,
                        {"updated_at": record["created_at"]},
                    )
            snapshot = await read_turns(self._store, conversation_id)
        except ChatSyncError as e:
            # The turn is durable even though a later step failed.
            if written:
                e.partial = True
            raise

        if not any(_matches(t, key) for t in snapshot.turns):
            logger.error(
                "Turn for %s (role=%s) missing from converged list", conversation_id, role
            )
            raise ConsistencyViolationError(
                f"Turn in conversation {conversation_id!r} was reported stored "
                "but is not readable",
                hint="The store's unique constraints on messages are missing "
                "or inconsistent.",
            )
        return snapshot

    async def _create(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        *,
        submission_key: str,
        reply_to: str | None,
    ) -> dict[str, Any] | None:
        """Write the turn; return the new row, or None if another caller won."""
        try:
            return await self._store.create_record(
                MESSAGES,
                {
                    "conversation_id": conversation_id,
                    "role": role,
                    "content": content,
                    "submission_key": submission_key,
                    "reply_to": reply_to,
                    "created_at": utcnow_iso(),
                },
            )
        except DuplicateKeyError as e:
            logger.debug(
                "Turn write for %s lost a race on %s; converging",
                conversation_id,
                ",".join(e.constraint),
            )
            return None


def _matches(turn: Any, key: dict[str, Any]) -> bool:
    return all(getattr(turn, k) == v for k, v in key.items())
