"""Engine wiring and the ``build_engine`` factory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatsync.appender import MessageAppender
from chatsync.errors import ChatSyncError, ConfigurationError
from chatsync.pipeline import ChatSession, _annotate
from chatsync.prompts import PromptRegistry, list_conversations
from chatsync.replies import ReplyService
from chatsync.resolver import ConversationResolver
from chatsync.slots import ActiveConversationSlot, JSONSlots, MemorySlots
from chatsync.store.json_store import JSONStore
from chatsync.store.memory import MemoryStore
from chatsync.types import ActiveConversation
from chatsync.view import ReconciliationView

if TYPE_CHECKING:
    from chatsync.config import Config
    from chatsync.providers.base import ReplyProvider
    from chatsync.slots import SlotStorage
    from chatsync.store.base import StoreClient
    from chatsync.types import AuthSession, ConversationSummary

logger = logging.getLogger(__name__)


class ChatEngine:
    """Open, resume and list conversations for an explicit session.

    No method reads ambient identity: every call takes the ``AuthSession``
    it acts for.
    """

    def __init__(
        self,
        store: StoreClient,
        replies: ReplyService,
        slots: SlotStorage | None = None,
    ) -> None:
        """Initialize with a store, a reply service and restart-surviving slots."""
        self.store = store
        self.replies = replies
        self.slots: SlotStorage = slots if slots is not None else MemorySlots()
        self.resolver = ConversationResolver(store)
        self.appender = MessageAppender(store)
        self.prompts = PromptRegistry(store)
        self._active = ActiveConversationSlot(self.slots)

    async def open(
        self,
        session: AuthSession,
        *,
        topic_key: str | None = None,
        topic_text: str | None = None,
        seed: str | None = None,
    ) -> ChatSession:
        """Resolve the conversation for ``(session.user_id, topic_key)`` and show it.

        When ``seed`` is given it is submitted as the first user turn; a seed
        already stored is neither duplicated nor answered twice.
        """
        try:
            conversation = await self.resolver.resolve_conversation(
                session.user_id, topic_key
            )
        except ChatSyncError as e:
            _annotate(e, phase="resolve", partial=False)
            raise

        chat = self._session_for(session.user_id, conversation.id, topic_text)
        self._active.save(
            ActiveConversation(conversation_id=conversation.id, topic_text=topic_text)
        )
        if seed is not None:
            await chat.submit(seed)
        else:
            await chat.refresh()
            await chat.answer_pending()
        return chat

    async def start_topic(self, session: AuthSession, text: str) -> ChatSession:
        """Save ``text`` as a prompt and open its conversation seeded with it."""
        content = text.strip()
        if not content:
            raise ValueError("Cannot start a conversation from an empty prompt")
        try:
            prompt = await self.prompts.ensure(session.user_id, content)
        except ChatSyncError as e:
            _annotate(e, phase="resolve", partial=False)
            raise
        return await self.open(
            session, topic_key=prompt.id, topic_text=prompt.prompt, seed=content
        )

    async def resume(self, session: AuthSession) -> ChatSession | None:
        """Reopen the conversation recorded in the restoration slot, if any.

        The recorded id is used directly; nothing is resolved or created.
        A slot pointing at a missing or foreign conversation is cleared.
        """
        active = self._active.load()
        if active is None:
            return None
        conversation = await self.resolver.get(active.conversation_id)
        if conversation is None or conversation.user_id != session.user_id:
            logger.info(
                "Discarding stale active conversation %s", active.conversation_id
            )
            self._active.clear()
            return None
        chat = self._session_for(session.user_id, conversation.id, active.topic_text)
        await chat.refresh()
        return chat

    async def list_conversations(self, session: AuthSession) -> list[ConversationSummary]:
        """Return the session user's conversations, most recently updated first."""
        return await list_conversations(self.store, session.user_id)

    async def aclose(self) -> None:
        """Release provider resources."""
        await self.replies.aclose()

    def _session_for(
        self, user_id: str, conversation_id: str, topic_text: str | None
    ) -> ChatSession:
        return ChatSession(
            user_id=user_id,
            view=ReconciliationView(self.store, conversation_id),
            appender=self.appender,
            replies=self.replies,
            topic_text=topic_text,
        )


def build_engine(config: Config) -> ChatEngine:
    """Build a ChatEngine from configuration."""
    store: StoreClient
    if config.store_path is not None:
        store = JSONStore(config.store_path)
    else:
        store = MemoryStore()

    slots: SlotStorage
    if config.state_dir is not None:
        slots = JSONSlots(config.state_dir / "slots.json")
    else:
        slots = MemorySlots()

    replies = ReplyService(
        _get_provider(config),
        model=config.model,
        provider_name="mock" if config.use_mock else config.provider,
        max_tokens=config.max_tokens,
        system_instruction=config.system_instruction,
        retry=config.retry,
    )
    return ChatEngine(store, replies, slots)


def _get_provider(config: Config) -> ReplyProvider:
    """Get the appropriate provider based on configuration."""
    if config.use_mock:
        from chatsync.providers.mock import MockProvider

        return MockProvider()

    if not config.api_key:
        raise ConfigurationError(
            "api_key required for real API",
            hint="Set the provider's API key variable or pass Config(api_key=...).",
        )

    if config.provider == "openai":
        from chatsync.providers.openai import OpenAIProvider

        return OpenAIProvider(config.api_key)

    if config.provider == "gemini":
        from chatsync.providers.gemini import GeminiProvider

        return GeminiProvider(config.api_key)

    from chatsync.providers.anthropic import AnthropicProvider

    return AnthropicProvider(config.api_key)
