"""Exception hierarchy for chatsync."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ChatSyncError(Exception):
    """Base exception for all chatsync errors.

    ``phase`` and ``partial`` are filled in by the chat pipeline when an error
    escapes one of its stages, so callers can tell "nothing changed" apart
    from "some turns were already written".
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        phase: str | None = None,
        partial: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint
        self.phase = phase
        self.partial = partial


class ConfigurationError(ChatSyncError):
    """Configuration validation or resolution failed."""


class StoreError(ChatSyncError):
    """A store operation failed."""


class DuplicateKeyError(StoreError):
    """A create would have violated a declared uniqueness constraint.

    Expected under races. The resolver and appender recover from it by
    re-reading; it is never surfaced past them.
    """

    def __init__(
        self,
        message: str,
        *,
        table: str,
        constraint: tuple[str, ...],
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.table = table
        self.constraint = constraint


class StoreUnavailableError(StoreError):
    """The store could not be reached or its backing data could not be read."""


class ConsistencyViolationError(ChatSyncError):
    """The store broke one of its own uniqueness guarantees.

    Fatal: reported, never retried.
    """


class ReplyError(ChatSyncError):
    """The reply provider failed.

    Providers attach retry metadata so the reply stage can perform bounded
    retries without brittle substring matching.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint, phase=phase)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.provider = provider


class RateLimitError(ReplyError):
    """Rate limit exceeded (HTTP 429)."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
