from __future__ import annotations

from pathlib import Path

import pytest

from chatsync.config import DEFAULT_MODEL, Config
from chatsync.engine import _get_provider, build_engine
from chatsync.errors import ConfigurationError
from chatsync.providers.anthropic import AnthropicProvider
from chatsync.providers.mock import MockProvider
from chatsync.slots import JSONSlots, MemorySlots
from chatsync.store.json_store import JSONStore
from chatsync.store.memory import MemoryStore

pytestmark = pytest.mark.unit


def test_defaults_target_anthropic() -> None:
    config = Config(use_mock=True)
    assert config.provider == "anthropic"
    assert config.model == DEFAULT_MODEL
    assert config.max_tokens == 1024
    assert config.store_path is None
    assert config.state_dir is None


def test_api_key_resolved_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    assert Config().api_key == "sk-test"


def test_missing_api_key_raises_with_hint() -> None:
    with pytest.raises(ConfigurationError) as exc:
        Config(provider="openai")
    assert "openai" in str(exc.value)
    assert exc.value.hint is not None
    assert "OPENAI_API_KEY" in exc.value.hint


def test_explicit_key_wins_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    assert Config(provider="gemini", api_key="explicit").api_key == "explicit"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"provider": "nope"},
        {"model": ""},
        {"max_tokens": 0},
    ],
)
def test_invalid_values_raise_configuration_error(kwargs: dict) -> None:
    with pytest.raises(ConfigurationError):
        Config(use_mock=True, **kwargs)


def test_paths_are_normalized(tmp_path: Path) -> None:
    config = Config(use_mock=True, store_path=str(tmp_path / "chat.json"))
    assert isinstance(config.store_path, Path)


def test_repr_redacts_api_key() -> None:
    config = Config(api_key="sk-very-secret")
    assert "sk-very-secret" not in repr(config)
    assert "[REDACTED]" in str(config)


def test_build_engine_defaults_to_memory_backends() -> None:
    engine = build_engine(Config(use_mock=True))
    assert isinstance(engine.store, MemoryStore)
    assert not isinstance(engine.store, JSONStore)
    assert isinstance(engine.slots, MemorySlots)


def test_build_engine_uses_file_backends(tmp_path: Path) -> None:
    engine = build_engine(
        Config(use_mock=True, store_path=tmp_path / "s.json", state_dir=tmp_path)
    )
    assert isinstance(engine.store, JSONStore)
    assert isinstance(engine.slots, JSONSlots)


def test_provider_selection() -> None:
    assert isinstance(_get_provider(Config(use_mock=True)), MockProvider)
    assert isinstance(_get_provider(Config(api_key="k")), AnthropicProvider)
