"""One open conversation: submit turns, get replies, keep the view converged.

Each stage is a plain coroutine returning a result or raising a typed error:

    append user turn -> reply (skipped if already answered) -> append assistant turn

and every stage that touches the store applies its read-back to the view.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatsync.errors import ChatSyncError, ReplyError

if TYPE_CHECKING:
    from chatsync.appender import MessageAppender
    from chatsync.replies import ReplyService
    from chatsync.types import Turn, TurnSnapshot
    from chatsync.view import ReconciliationView

logger = logging.getLogger(__name__)


class ChatSession:
    """A user's view of one conversation plus the operations that mutate it."""

    def __init__(
        self,
        *,
        user_id: str,
        view: ReconciliationView,
        appender: MessageAppender,
        replies: ReplyService,
        topic_text: str | None = None,
    ) -> None:
        """Bind a session to an already-resolved conversation's view."""
        self.user_id = user_id
        self.topic_text = topic_text
        self.view = view
        self._appender = appender
        self._replies = replies

    @property
    def conversation_id(self) -> str:
        """Id of the conversation this session shows."""
        return self.view.conversation_id

    def current_turns(self) -> list[Turn]:
        """Return the turns currently shown."""
        return self.view.current_turns()

    async def refresh(self) -> list[Turn]:
        """Re-read the conversation (e.g. when returning to it)."""
        try:
            return await self.view.refresh()
        except ChatSyncError as e:
            _annotate(e, phase="refresh", partial=False)
            raise

    async def submit(self, text: str, *, submission_key: str = "") -> list[Turn]:
        """Persist a user turn, obtain and persist the reply, return the view.

        A failed reply is shown as a transient apology turn, not raised.
        Store failures are raised with ``phase`` and ``partial`` set.

        Raises:
            ValueError: ``text`` is empty after trimming.
            StoreError: A store call failed.
            ConsistencyViolationError: The store broke a uniqueness guarantee.
        """
        content = text.strip()
        if not content:
            raise ValueError("Cannot submit an empty message")

        try:
            snapshot = await self._appender.append(
                self.conversation_id, "user", content, submission_key=submission_key
            )
        except ChatSyncError as e:
            _annotate(e, phase="append_user", partial=False)
            raise
        self.view.apply(snapshot)

        user_turn = next(
            (
                t
                for t in reversed(snapshot.turns)
                if t.role == "user"
                and t.content == content
                and t.submission_key == submission_key
            ),
            None,
        )
        if user_turn is not None:
            await self._answer(snapshot, user_turn)
        return self.view.current_turns()

    async def answer_pending(self) -> list[Turn]:
        """Request a reply if the latest user turn has none stored (e.g. after an apology)."""
        snapshot = self.view.snapshot
        user_turn = snapshot.last_user_turn()
        if user_turn is not None:
            await self._answer(snapshot, user_turn)
        return self.view.current_turns()

    async def _answer(self, snapshot: TurnSnapshot, user_turn: Turn) -> None:
        if snapshot.answer_to(user_turn.id) is not None:
            logger.debug("Turn %s already answered; no reply requested", user_turn.id)
            return

        history = []
        for turn in snapshot.turns:
            history.append(turn)
            if turn.id == user_turn.id:
                break

        try:
            text = await self._replies.generate_reply(history)
        except ReplyError as e:
            logger.warning(
                "Showing apology for conversation %s: %s", self.conversation_id, e
            )
            self.view.show_apology()
            return

        try:
            converged = await self._appender.append(
                self.conversation_id,
                "assistant",
                text,
                submission_key=user_turn.id,
                reply_to=user_turn.id,
            )
        except ChatSyncError as e:
            _annotate(e, phase="append_assistant", partial=True)
            raise
        self.view.apply(converged)


def _annotate(err: ChatSyncError, *, phase: str, partial: bool) -> None:
    """Fill in where an error escaped the pipeline without clobbering."""
    if err.phase is None:
        err.phase = phase
    if err.partial is None:
        err.partial = partial
