"""Shared provider-side error helpers.

Providers attach retry metadata via ReplyError so reply retry can be bounded
and deterministic without brittle substring matching.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from chatsync._http import RETRYABLE_STATUS_CODES
from chatsync.config import API_KEY_ENV_VARS
from chatsync.errors import RateLimitError, ReplyError, _walk_exception_chain


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status", "code"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Walk the exception chain to find a retry-after delay in seconds."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)

        response = getattr(e, "response", None)
        headers: Any = getattr(response, "headers", None)
        if headers is None:
            continue
        try:
            raw = headers.get("Retry-After")
        except (AttributeError, TypeError):
            raw = None
        if isinstance(raw, str) and raw.strip():
            try:
                seconds = float(raw)
            except ValueError:
                continue
            if seconds >= 0:
                return seconds
    return None


def _auth_hint(provider: str, status_code: int | None) -> str | None:
    if status_code in {401, 403}:
        env_var = API_KEY_ENV_VARS.get(provider, "API key")
        return f"Check credentials/permissions (try setting {env_var} or Config.api_key)."
    return None


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str = "generate",
    message: str | None = None,
) -> ReplyError:
    """Map provider SDK exceptions into ReplyError with stable retry metadata."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, ReplyError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc

    status_code = extract_status_code(exc)
    retry_after_s = extract_retry_after_s(exc)

    retryable = retry_after_s is not None
    if isinstance(status_code, int) and status_code in RETRYABLE_STATUS_CODES:
        retryable = True
    else:
        for e in _walk_exception_chain(exc):
            if isinstance(e, (httpx.TimeoutException, httpx.RequestError)):
                retryable = True
                break

    msg = message or f"{provider} {phase} failed"
    err_cls: type[ReplyError] = RateLimitError if status_code == 429 else ReplyError
    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    cause = str(exc)
    return err_cls(
        f"{msg}{status_note}: {cause}" if cause else f"{msg}{status_note}",
        hint=_auth_hint(provider, status_code),
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
    )
