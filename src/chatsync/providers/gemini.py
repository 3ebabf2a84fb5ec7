"""Gemini provider implementation."""

from __future__ import annotations

import asyncio
from typing import Any

from chatsync.errors import ReplyError
from chatsync.providers._errors import wrap_provider_error
from chatsync.providers.models import ReplyRequest, ReplyResponse


class GeminiProvider:
    """Google Gemini API provider."""

    def __init__(self, api_key: str) -> None:
        """Create provider with an API key."""
        self.api_key = api_key
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazy-initialize the Gemini client."""
        if self._client is None:
            try:
                from google import genai
            except ImportError as e:
                raise ReplyError(
                    "google-genai package not installed",
                    hint="pip install google-genai",
                ) from e
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        """Generate a reply from the Gemini model."""
        client = self._get_client()
        from google.genai import types

        config_kwargs: dict[str, Any] = {"max_output_tokens": request.max_tokens}
        if request.system_instruction is not None:
            config_kwargs["system_instruction"] = request.system_instruction
        if request.temperature is not None:
            config_kwargs["temperature"] = request.temperature

        # Gemini names the assistant role "model".
        contents = [
            types.Content(
                role="model" if item.role == "assistant" else "user",
                parts=[types.Part.from_text(text=item.content)],
            )
            for item in request.messages
            if item.content
        ]

        try:
            response = await client.aio.models.generate_content(
                model=request.model,
                contents=contents,
                config=types.GenerateContentConfig(**config_kwargs),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider="gemini",
                message="Gemini generate failed",
            ) from e

        if not response:
            raise ReplyError("Gemini returned an empty response.", provider="gemini")

        usage: dict[str, int] = {}
        meta = getattr(response, "usage_metadata", None)
        if meta is not None:
            usage = {
                "input_tokens": int(getattr(meta, "prompt_token_count", 0) or 0),
                "output_tokens": int(getattr(meta, "candidates_token_count", 0) or 0),
                "total_tokens": int(getattr(meta, "total_token_count", 0) or 0),
            }
        return ReplyResponse(text=getattr(response, "text", "") or "", usage=usage)
