"""Configuration: frozen Config with explicit provider/model requirements."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

from chatsync.errors import ConfigurationError
from chatsync.retry import RetryPolicy

load_dotenv()

ProviderName = Literal["anthropic", "openai", "gemini"]

API_KEY_ENV_VARS: dict[ProviderName, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"


@dataclass(frozen=True)
class Config:
    """Immutable configuration for a chat engine.

    API keys are auto-resolved from standard environment variables. Leaving
    ``store_path`` or ``state_dir`` unset keeps that data in memory only.

    Example:
        config = Config(store_path="data/chat.json", state_dir="data/state")
        # API key is automatically resolved from ANTHROPIC_API_KEY
    """

    provider: ProviderName = "anthropic"
    model: str = DEFAULT_MODEL
    #: Auto-resolved from ``ANTHROPIC_API_KEY``/``OPENAI_API_KEY``/``GEMINI_API_KEY``.
    api_key: str | None = None
    use_mock: bool = False
    max_tokens: int = 1024
    system_instruction: str | None = None
    store_path: Path | None = None
    state_dir: Path | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Auto-resolve API key, normalize paths and validate."""
        if self.provider not in API_KEY_ENV_VARS:
            raise ConfigurationError(
                f"Unknown provider: {self.provider!r}",
                hint="Supported providers: 'anthropic', 'openai', 'gemini'",
            )
        if not self.model:
            raise ConfigurationError(
                "model must not be empty",
                hint=f"For example Config(model={DEFAULT_MODEL!r}).",
            )
        if self.max_tokens < 1:
            raise ConfigurationError(
                f"max_tokens must be ≥ 1, got {self.max_tokens}",
                hint="This caps the length of each assistant reply.",
            )

        for name in ("store_path", "state_dir"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                object.__setattr__(self, name, Path(value))

        if self.api_key is None and not self.use_mock:
            resolved_key = os.environ.get(API_KEY_ENV_VARS[self.provider])
            object.__setattr__(self, "api_key", resolved_key)

        if not self.use_mock and not self.api_key:
            env_var = API_KEY_ENV_VARS[self.provider]
            raise ConfigurationError(
                f"API key required for {self.provider}",
                hint=f"Set {env_var} environment variable or pass api_key=...",
            )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(provider={self.provider!r}, model={self.model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, use_mock={self.use_mock}, "
            f"store_path={self.store_path!r}, state_dir={self.state_dir!r})"
        )

    __repr__ = __str__
