"""Typed, immutable records exchanged between the engine and its callers.

Store rows are plain dicts at the ``StoreClient`` boundary; these dataclasses
are the shapes everything above the store works with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

Role = Literal["user", "assistant"]
ROLES: tuple[Role, ...] = ("user", "assistant")

# Table names shared by the store schema and the components that query it.
CONVERSATIONS = "conversations"
MESSAGES = "messages"
USER_PROMPTS = "user_prompts"


def utcnow_iso() -> str:
    """Return the current UTC wall-clock time as a fixed-width ISO-8601 string."""
    return datetime.now(UTC).isoformat(timespec="microseconds")


@dataclass(frozen=True)
class Conversation:
    """One conversation row: at most one per (user_id, prompt_id) pair."""

    id: str
    user_id: str
    prompt_id: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Conversation:
        """Build from a ``conversations`` store row."""
        created_at = str(record["created_at"])
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]),
            prompt_id=record.get("prompt_id"),
            created_at=created_at,
            updated_at=str(record.get("updated_at") or created_at),
        )


@dataclass(frozen=True)
class Turn:
    """A role-tagged message within a conversation.

    ``transient`` turns exist only in a view (the reply-failure apology) and
    never in the store.
    """

    id: str
    conversation_id: str
    role: Role
    content: str
    created_at: str
    seq: int = 0
    submission_key: str = ""
    reply_to: str | None = None
    transient: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Turn:
        """Build from a ``messages`` store row."""
        return cls(
            id=str(record["id"]),
            conversation_id=str(record["conversation_id"]),
            role=record["role"],
            content=str(record["content"]),
            created_at=str(record["created_at"]),
            seq=int(record.get("seq", 0)),
            submission_key=str(record.get("submission_key") or ""),
            reply_to=record.get("reply_to"),
        )

    def as_message(self) -> dict[str, str]:
        """Return the ``{role, content}`` shape the reply provider consumes."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Prompt:
    """A saved prompt; its id is the topic key a conversation is anchored to."""

    id: str
    user_id: str
    prompt: str
    created_at: str

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Prompt:
        """Build from a ``user_prompts`` store row."""
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]),
            prompt=str(record["prompt"]),
            created_at=str(record["created_at"]),
        )


@dataclass(frozen=True)
class TurnSnapshot:
    """The full, ordered turn list of one conversation as read from the store.

    ``version`` is the highest store sequence among the turns (0 when empty).
    Turns are append-only, so a later read never carries a smaller version.
    """

    conversation_id: str
    turns: tuple[Turn, ...] = ()
    version: int = 0

    @classmethod
    def from_records(
        cls, conversation_id: str, records: list[dict[str, Any]]
    ) -> TurnSnapshot:
        """Build from ``messages`` rows already in canonical order."""
        turns = tuple(Turn.from_record(r) for r in records)
        version = max((t.seq for t in turns), default=0)
        return cls(conversation_id=conversation_id, turns=turns, version=version)

    def count(self, role: Role, content: str) -> int:
        """Return how many turns carry exactly this role and content."""
        return sum(1 for t in self.turns if t.role == role and t.content == content)

    def last_user_turn(self) -> Turn | None:
        """Return the most recent user turn, if any."""
        for turn in reversed(self.turns):
            if turn.role == "user":
                return turn
        return None

    def answer_to(self, turn_id: str) -> Turn | None:
        """Return the assistant turn answering ``turn_id``, if stored."""
        for turn in self.turns:
            if turn.role == "assistant" and turn.reply_to == turn_id:
                return turn
        return None


@dataclass(frozen=True)
class PendingDraft:
    """Turn content submitted before the user had an identity."""

    content: str


@dataclass(frozen=True)
class ActiveConversation:
    """What a reload needs to resume the view without re-resolving."""

    conversation_id: str
    topic_text: str | None = None


@dataclass(frozen=True)
class AuthSession:
    """An authenticated identity as delivered by the auth gateway.

    ``is_new_account`` is issued by the auth server; it is never inferred
    from account-age timestamps.
    """

    user_id: str
    is_new_account: bool = False


@dataclass(frozen=True)
class ConversationSummary:
    """One entry of a user's conversation catalog."""

    conversation_id: str
    prompt_id: str
    prompt_text: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class PromotionReport:
    """Outcome of promoting pending drafts after authentication."""

    user_id: str
    is_new_account: bool
    snapshots: tuple[TurnSnapshot, ...] = field(default=())
