"""Reply generation: ordered turns in, one assistant text out."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from chatsync.providers._errors import wrap_provider_error
from chatsync.providers.models import Message, ReplyRequest
from chatsync.retry import RetryPolicy, request_with_retry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chatsync.providers.base import ReplyProvider
    from chatsync.types import Turn

logger = logging.getLogger(__name__)

NO_REPLY_TEXT = "I apologize, but I could not generate a response."


class ReplyService:
    """Call a reply provider with bounded retries and typed failures."""

    def __init__(
        self,
        provider: ReplyProvider,
        *,
        model: str,
        provider_name: str = "provider",
        max_tokens: int = 1024,
        system_instruction: str | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        """Initialize with a provider and the request defaults to send it."""
        self._provider = provider
        self._model = model
        self._provider_name = provider_name
        self._max_tokens = max_tokens
        self._system_instruction = system_instruction
        self._retry = retry or RetryPolicy()

    async def generate_reply(self, turns: Sequence[Turn]) -> str:
        """Return the assistant's reply to ``turns`` (oldest first).

        Raises:
            ReplyError: The provider failed and retries were exhausted or the
                failure was not retryable.
        """
        request = ReplyRequest(
            model=self._model,
            messages=[Message(role=t.role, content=t.content) for t in turns],
            system_instruction=self._system_instruction,
            max_tokens=self._max_tokens,
        )
        try:
            response = await request_with_retry(
                lambda: self._provider.generate(request), policy=self._retry
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(e, provider=self._provider_name)
            logger.warning("Reply generation failed: %s", err)
            if err is e:
                raise
            raise err from e

        text = response.text.strip()
        if not text:
            logger.warning("Provider returned no reply text; using fallback")
            return NO_REPLY_TEXT
        return text

    async def aclose(self) -> None:
        """Release provider resources; cleanup never masks a primary failure."""
        aclose = getattr(self._provider, "aclose", None)
        if not callable(aclose):
            return
        try:
            await aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Provider cleanup failed: %s", exc)
