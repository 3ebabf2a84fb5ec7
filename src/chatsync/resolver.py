"""Locate-or-create exactly one conversation per (user, topic) pair.

Concurrent creators are tolerated through the store's unique constraint on
``(user_id, prompt_id)``: the loser of a create race gets a
``DuplicateKeyError`` and re-reads the winner's row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatsync.errors import ConsistencyViolationError, DuplicateKeyError
from chatsync.types import CONVERSATIONS, Conversation, utcnow_iso

if TYPE_CHECKING:
    from chatsync.store.base import StoreClient

logger = logging.getLogger(__name__)


class ConversationResolver:
    """Resolve ``(user_id, topic_key)`` to its single conversation."""

    def __init__(self, store: StoreClient) -> None:
        """Initialize with the store the conversations live in."""
        self._store = store

    async def resolve(self, user_id: str, topic_key: str | None) -> str:
        """Return the conversation id for the pair, creating it if absent.

        A ``None`` topic key means an ad-hoc conversation: uniqueness does not
        apply and a new conversation is always created.

        Raises:
            ConsistencyViolationError: The create reported a duplicate but no
                matching row can be read back.
        """
        return (await self.resolve_conversation(user_id, topic_key)).id

    async def resolve_conversation(
        self, user_id: str, topic_key: str | None
    ) -> Conversation:
        """Like ``resolve`` but return the whole conversation record."""
        if topic_key is not None:
            existing = await self.find(user_id, topic_key)
            if existing is not None:
                return existing

        now = utcnow_iso()
        try:
            record = await self._store.create_record(
                CONVERSATIONS,
                {
                    "user_id": user_id,
                    "prompt_id": topic_key,
                    "created_at": now,
                    "updated_at": now,
                },
            )
        except DuplicateKeyError:
            logger.debug(
                "Conversation create lost a race for user=%s topic=%s; re-reading",
                user_id,
                topic_key,
            )
            existing = (
                await self.find(user_id, topic_key) if topic_key is not None else None
            )
            if existing is None:
                logger.error(
                    "Store reported a duplicate conversation for user=%s topic=%s "
                    "but none could be read back",
                    user_id,
                    topic_key,
                )
                raise ConsistencyViolationError(
                    f"Conversation for user {user_id!r} and topic {topic_key!r} "
                    "reported as duplicate but not found",
                    hint="The store's unique constraint on (user_id, prompt_id) "
                    "is missing or inconsistent.",
                ) from None
            return existing

        conversation = Conversation.from_record(record)
        logger.info(
            "Created conversation %s for user=%s topic=%s",
            conversation.id,
            user_id,
            topic_key,
        )
        return conversation

    async def find(self, user_id: str, topic_key: str) -> Conversation | None:
        """Return the earliest conversation for the pair, or None."""
        record = await self._store.find_one(
            CONVERSATIONS,
            {"user_id": user_id, "prompt_id": topic_key},
            order=(("created_at", "asc"),),
        )
        return Conversation.from_record(record) if record is not None else None

    async def get(self, conversation_id: str) -> Conversation | None:
        """Return a conversation by id, or None."""
        record = await self._store.find_one(CONVERSATIONS, {"id": conversation_id})
        return Conversation.from_record(record) if record is not None else None
