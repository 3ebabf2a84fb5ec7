"""Anthropic Messages API provider."""

from __future__ import annotations

import asyncio
from typing import Any

from chatsync.errors import ReplyError
from chatsync.providers._errors import wrap_provider_error
from chatsync.providers.models import Message, ReplyRequest, ReplyResponse


class AnthropicProvider:
    """Anthropic Messages API provider."""

    def __init__(self, api_key: str) -> None:
        """Initialize with an API key."""
        self.api_key = api_key
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the async Anthropic client."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError as e:
                raise ReplyError(
                    "anthropic package not installed",
                    hint="pip install anthropic",
                ) from e
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    @staticmethod
    def _build_messages(history: list[Message]) -> list[dict[str, Any]]:
        """Build the messages list, merging consecutive same-role turns.

        Anthropic requires strict user/assistant alternation.
        """
        messages: list[dict[str, Any]] = []
        for item in history:
            if not item.content:
                continue
            role = "assistant" if item.role == "assistant" else "user"
            _append_message(messages, {"role": role, "content": item.content})
        return messages

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        """Generate a reply using Anthropic's Messages API."""
        client = self._get_client()

        create_kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": self._build_messages(request.messages),
            "max_tokens": request.max_tokens,
        }
        if request.system_instruction:
            create_kwargs["system"] = request.system_instruction
        if request.temperature is not None:
            create_kwargs["temperature"] = request.temperature

        try:
            response = await client.messages.create(**create_kwargs)
        except asyncio.CancelledError:
            raise
        except ReplyError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider="anthropic",
                message="Anthropic generate failed",
            ) from e
        return _parse_response(response)

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()


def _parse_response(response: Any) -> ReplyResponse:
    """Parse an Anthropic Message into a ReplyResponse (text blocks only)."""
    text_parts = [
        getattr(block, "text", "")
        for block in getattr(response, "content", None) or []
        if getattr(block, "type", None) == "text"
    ]
    usage_raw = getattr(response, "usage", None)
    usage: dict[str, int] = {}
    if usage_raw is not None:
        input_tokens = int(getattr(usage_raw, "input_tokens", 0) or 0)
        output_tokens = int(getattr(usage_raw, "output_tokens", 0) or 0)
        usage = {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
        }
    response_id = getattr(response, "id", None)
    return ReplyResponse(
        text="".join(text_parts),
        usage=usage,
        response_id=response_id if isinstance(response_id, str) else None,
    )


def _append_message(messages: list[dict[str, Any]], msg: dict[str, Any]) -> None:
    """Append *msg*, merging into the previous message when roles match."""
    if messages and messages[-1]["role"] == msg["role"]:
        messages[-1]["content"] = f"{messages[-1]['content']}\n\n{msg['content']}"
    else:
        messages.append(msg)
