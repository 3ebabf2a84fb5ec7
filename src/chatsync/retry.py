"""Re-requesting a failed reply.

Only reply generation is retried. Store calls never are: a failed write is
surfaced to the caller, who decides whether to submit again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
import time
from typing import TYPE_CHECKING, TypeVar

import httpx

from chatsync._http import RETRYABLE_STATUS_CODES
from chatsync.errors import ReplyError, _walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, a failed reply is re-requested.

    ``max_elapsed_s`` caps the total time spent waiting between attempts;
    ``None`` removes the cap.
    """

    max_attempts: int = 2
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float = 5.0
    jitter: bool = True
    max_elapsed_s: float | None = 15.0

    def __post_init__(self) -> None:
        """Reject values that would make the wait schedule meaningless."""
        checks = (
            (self.max_attempts >= 1, "max_attempts must be >= 1"),
            (self.initial_delay_s >= 0, "initial_delay_s must be >= 0"),
            (self.backoff_multiplier > 0, "backoff_multiplier must be > 0"),
            (self.max_delay_s >= 0, "max_delay_s must be >= 0"),
            (
                self.max_elapsed_s is None or self.max_elapsed_s >= 0,
                "max_elapsed_s must be >= 0 or None",
            ),
        )
        for ok, problem in checks:
            if not ok:
                raise ValueError(f"RetryPolicy.{problem}")

    def delay_before(self, retry: int, *, retry_after_s: float | None = None) -> float:
        """Seconds to wait before the ``retry``-th re-request (1-based).

        A provider's Retry-After wins over a shorter computed delay.
        """
        delay = min(
            self.max_delay_s,
            self.initial_delay_s * self.backoff_multiplier ** max(0, retry - 1),
        )
        if self.jitter and delay > 0:
            delay = random.uniform(0, delay)  # noqa: S311
        if retry_after_s is not None:
            delay = max(delay, retry_after_s)
        return delay


def is_retryable_reply_failure(exc: BaseException) -> bool:
    """Return True when asking the provider again may produce a reply.

    A ReplyError is retried only when the provider marked it retryable or it
    carries a retryable HTTP status. Anything else is retried only if a
    timeout or httpx transport error sits in its cause chain.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, ReplyError):
        return exc.retryable is True or exc.status_code in RETRYABLE_STATUS_CODES
    return any(
        isinstance(e, (TimeoutError, httpx.TimeoutException, httpx.RequestError))
        for e in _walk_exception_chain(exc)
    )


async def request_with_retry(
    request: Callable[[], Awaitable[T]], *, policy: RetryPolicy
) -> T:
    """Await ``request()``, re-requesting retryable failures per ``policy``."""
    deadline = (
        None if policy.max_elapsed_s is None else time.monotonic() + policy.max_elapsed_s
    )
    attempt = 1
    while True:
        try:
            return await request()
        except Exception as exc:
            if attempt >= policy.max_attempts or not is_retryable_reply_failure(exc):
                raise
            retry_after = exc.retry_after_s if isinstance(exc, ReplyError) else None
            if retry_after is not None and retry_after < 0:
                retry_after = None
            delay = policy.delay_before(attempt, retry_after_s=retry_after)
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise
                delay = min(delay, remaining)
            logger.debug(
                "Reply attempt %d failed (%s); retrying in %.2fs", attempt, exc, delay
            )
            if delay > 0:
                await asyncio.sleep(delay)
            attempt += 1
