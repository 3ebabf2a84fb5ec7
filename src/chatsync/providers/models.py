"""Domain models for the reply provider transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Message:
    """A role-tagged conversational turn sent to a provider."""

    role: str
    content: str = ""


@dataclass(frozen=True)
class ReplyRequest:
    """A unified request payload for one reply generation call."""

    model: str
    messages: list[Message]
    system_instruction: str | None = None
    max_tokens: int = 1024
    temperature: float | None = None


@dataclass
class ReplyResponse:
    """A standardized response from a reply generation call."""

    text: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    response_id: str | None = None
