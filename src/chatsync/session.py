"""Bridge between an external auth provider and the conversation engine.

Drafts submitted before sign-in wait in transient holding. When an identity
arrives they are handed to promotion in submission order and the holding is
cleared at once, before any store write, so a repeated auth notification
finds nothing to promote. Duplicate promotion from elsewhere (another tab
holding the same draft) is absorbed by the resolver and appender, not here.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Protocol

from chatsync.errors import ChatSyncError
from chatsync.types import AuthSession, PendingDraft, PromotionReport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chatsync.engine import ChatEngine
    from chatsync.pipeline import ChatSession
    from chatsync.slots import DraftHolding

logger = logging.getLogger(__name__)


class AuthGateway(Protocol):
    """The external session source."""

    def get_session(self) -> AuthSession | None:
        """Return the current session, or None when signed out."""
        ...

    def on_auth_change(
        self, listener: Callable[[AuthSession | None], Awaitable[None]]
    ) -> Callable[[], None]:
        """Register a listener; return a function that unregisters it.

        Listeners may be called more than once with the same transition.
        """
        ...


class LocalAuthGateway:
    """In-process gateway: whoever completes authentication calls ``emit``."""

    def __init__(self, session: AuthSession | None = None) -> None:
        """Start signed out unless an initial session is given."""
        self._session = session
        self._listeners: list[Callable[[AuthSession | None], Awaitable[None]]] = []

    def get_session(self) -> AuthSession | None:
        """Return the current session."""
        return self._session

    def on_auth_change(
        self, listener: Callable[[AuthSession | None], Awaitable[None]]
    ) -> Callable[[], None]:
        """Register a listener."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def emit(self, session: AuthSession | None) -> None:
        """Set the session and notify listeners in registration order."""
        self._session = session
        for listener in list(self._listeners):
            await listener(session)


class SessionState(enum.Enum):
    """Authentication state of one client session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionBridge:
    """Promote pre-authentication drafts once a user identity is known."""

    def __init__(self, engine: ChatEngine, holding: DraftHolding) -> None:
        """Bind the bridge to an engine and its transient draft holding."""
        self._engine = engine
        self._holding = holding
        self._session: AuthSession | None = None
        self.state = (
            SessionState.AUTHENTICATING if holding.peek() else SessionState.UNAUTHENTICATED
        )
        self.sessions: list[ChatSession] = []

    @property
    def session(self) -> AuthSession | None:
        """The authenticated session, if any."""
        return self._session

    async def submit(self, text: str) -> ChatSession | None:
        """Start a conversation, or hold the draft until sign-in completes.

        Returns:
            The opened session when authenticated, otherwise None.
        """
        content = text.strip()
        if not content:
            raise ValueError("Cannot submit an empty message")
        if self._session is not None:
            chat = await self._engine.start_topic(self._session, content)
            self.sessions.append(chat)
            return chat
        self._holding.add(PendingDraft(content=content))
        self.state = SessionState.AUTHENTICATING
        logger.debug("Holding draft until authentication completes")
        return None

    async def on_authenticated(self, session: AuthSession) -> PromotionReport:
        """Promote every held draft for ``session``, in submission order.

        If a promotion fails, the drafts not yet promoted (including the
        failing one) are put back in holding and the error is re-raised.
        """
        self._session = session
        self.state = SessionState.AUTHENTICATED
        drafts = self._holding.take_all()
        if drafts:
            logger.info(
                "Promoting %d draft(s) for user=%s (new account: %s)",
                len(drafts),
                session.user_id,
                session.is_new_account,
            )

        snapshots = []
        for index, draft in enumerate(drafts):
            try:
                chat = await self._engine.start_topic(session, draft.content)
            except ChatSyncError as e:
                for remaining in drafts[index:]:
                    self._holding.add(remaining)
                e.partial = bool(e.partial) or bool(snapshots)
                raise
            self.sessions.append(chat)
            snapshots.append(chat.view.snapshot)
        return PromotionReport(
            user_id=session.user_id,
            is_new_account=session.is_new_account,
            snapshots=tuple(snapshots),
        )

    async def handle_auth_change(self, session: AuthSession | None) -> None:
        """Auth listener: promote on sign-in, forget identity on sign-out."""
        if session is None:
            self._session = None
            self.state = (
                SessionState.AUTHENTICATING
                if self._holding.peek()
                else SessionState.UNAUTHENTICATED
            )
            return
        await self.on_authenticated(session)

    async def attach(self, gateway: AuthGateway) -> Callable[[], None]:
        """Promote for an existing session, then follow auth changes.

        Returns:
            A function that stops following the gateway.
        """
        current = gateway.get_session()
        if current is not None:
            await self.on_authenticated(current)
        return gateway.on_auth_change(self.handle_auth_change)
