"""OpenAI provider implementation."""

from __future__ import annotations

import asyncio
from typing import Any

from chatsync.errors import ReplyError
from chatsync.providers._errors import wrap_provider_error
from chatsync.providers.models import ReplyRequest, ReplyResponse


class OpenAIProvider:
    """OpenAI Responses API provider."""

    def __init__(self, api_key: str) -> None:
        """Initialize with an API key."""
        self.api_key = api_key
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise ReplyError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        """Generate a reply using OpenAI's responses endpoint."""
        client = self._get_client()

        input_messages: list[dict[str, Any]] = []
        for item in request.messages:
            if not item.content:
                continue
            role = "assistant" if item.role == "assistant" else "user"
            text_type = "output_text" if role == "assistant" else "input_text"
            input_messages.append(
                {"role": role, "content": [{"type": text_type, "text": item.content}]}
            )

        create_kwargs: dict[str, Any] = {
            "model": request.model,
            "input": input_messages,
            "max_output_tokens": request.max_tokens,
        }
        if request.system_instruction:
            create_kwargs["instructions"] = request.system_instruction
        if request.temperature is not None:
            create_kwargs["temperature"] = request.temperature

        try:
            response = await client.responses.create(**create_kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider="openai",
                message="OpenAI generate failed",
            ) from e

        usage_raw = getattr(response, "usage", None)
        usage: dict[str, int] = {}
        if usage_raw is not None:
            usage = {
                "input_tokens": int(getattr(usage_raw, "input_tokens", 0) or 0),
                "output_tokens": int(getattr(usage_raw, "output_tokens", 0) or 0),
                "total_tokens": int(getattr(usage_raw, "total_tokens", 0) or 0),
            }
        response_id = getattr(response, "id", None)
        return ReplyResponse(
            text=getattr(response, "output_text", "") or "",
            usage=usage,
            response_id=response_id if isinstance(response_id, str) else None,
        )

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()
