"""Saved prompts (topic keys) and the per-user conversation catalog."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatsync.errors import ConsistencyViolationError, DuplicateKeyError
from chatsync.types import (
    CONVERSATIONS,
    USER_PROMPTS,
    ConversationSummary,
    Prompt,
    utcnow_iso,
)

if TYPE_CHECKING:
    from chatsync.store.base import StoreClient

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


class PromptRegistry:
    """Find-or-create saved prompts, unique per (user, text)."""

    def __init__(self, store: StoreClient) -> None:
        """Initialize with the store the prompts live in."""
        self._store = store

    async def ensure(self, user_id: str, text: str) -> Prompt:
        """Return the user's saved prompt with this text, creating it if absent."""
        existing = await self._find(user_id, text)
        if existing is not None:
            return existing
        try:
            record = await self._store.create_record(
                USER_PROMPTS,
                {"user_id": user_id, "prompt": text, "created_at": utcnow_iso()},
            )
        except DuplicateKeyError:
            existing = await self._find(user_id, text)
            if existing is None:
                logger.error(
                    "Store reported a duplicate prompt for user=%s but none could "
                    "be read back",
                    user_id,
                )
                raise ConsistencyViolationError(
                    f"Prompt for user {user_id!r} reported as duplicate but not found",
                    hint="The store's unique constraint on user_prompts "
                    "(user_id, prompt) is missing or inconsistent.",
                ) from None
            return existing
        logger.debug("Saved prompt %s for user=%s", record["id"], user_id)
        return Prompt.from_record(record)

    async def get(self, prompt_id: str) -> Prompt | None:
        """Return a saved prompt by id, or None."""
        record = await self._store.find_one(USER_PROMPTS, {"id": prompt_id})
        return Prompt.from_record(record) if record is not None else None

    async def _find(self, user_id: str, text: str) -> Prompt | None:
        record = await self._store.find_one(
            USER_PROMPTS,
            {"user_id": user_id, "prompt": text},
            order=(("created_at", "asc"),),
        )
        return Prompt.from_record(record) if record is not None else None


async def list_conversations(
    store: StoreClient, user_id: str
) -> list[ConversationSummary]:
    """Return the user's topic-anchored conversations, most recently updated first."""
    conversations = await store.find_many(
        CONVERSATIONS, {"user_id": user_id}, order=(("updated_at", "desc"),)
    )
    anchored = [c for c in conversations if c.get("prompt_id") is not None]
    if not anchored:
        return []

    prompts = await store.find_many(USER_PROMPTS, {"user_id": user_id})
    texts = {p["id"]: p.get("prompt") for p in prompts}
    return [
        ConversationSummary(
            conversation_id=str(c["id"]),
            prompt_id=str(c["prompt_id"]),
            prompt_text=str(texts.get(c["prompt_id"]) or UNTITLED),
            created_at=str(c["created_at"]),
            updated_at=str(c.get("updated_at") or c["created_at"]),
        )
        for c in anchored
    ]
