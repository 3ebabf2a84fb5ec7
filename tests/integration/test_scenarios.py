"""End-to-end flows: sign-in promotion, multiple tabs, reload and racing replies."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from chatsync.appender import read_turns
from chatsync.config import Config
from chatsync.engine import ChatEngine, build_engine
from chatsync.session import LocalAuthGateway, SessionBridge
from chatsync.slots import DraftHolding, MemorySlots
from chatsync.store.memory import MemoryStore
from chatsync.types import AuthSession
from tests.conftest import make_replies
from tests.helpers import GateReplyProvider, ScriptedReplyProvider

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = pytest.mark.integration

U1 = AuthSession(user_id="u1", is_new_account=True)


def _tab(store: MemoryStore, provider) -> tuple[ChatEngine, SessionBridge]:
    """One browser tab: its own slots and bridge over the shared store."""
    slots = MemorySlots()
    engine = ChatEngine(store, make_replies(provider), slots)
    return engine, SessionBridge(engine, DraftHolding(slots))


@pytest.mark.asyncio
async def test_draft_before_sign_in_becomes_a_two_turn_conversation() -> None:
    store = MemoryStore()
    provider = ScriptedReplyProvider(["Here are some logo directions..."])
    _, bridge = _tab(store, provider)
    gateway = LocalAuthGateway()
    await bridge.attach(gateway)

    await bridge.submit("design a logo")
    assert await store.find_many("messages", {}) == []

    await gateway.emit(U1)

    (chat,) = bridge.sessions
    assert [(t.role, t.content) for t in chat.current_turns()] == [
        ("user", "design a logo"),
        ("assistant", "Here are some logo directions..."),
    ]
    conversations = await store.find_many("conversations", {"user_id": "u1"})
    assert len(conversations) == 1


@pytest.mark.asyncio
async def test_two_tabs_promoting_same_draft_make_one_conversation() -> None:
    store = MemoryStore(latency=0.001)
    provider = ScriptedReplyProvider(["first reply", "second reply"])
    _, left = _tab(store, provider)
    _, right = _tab(store, provider)
    await left.submit("make it blue")
    await right.submit("make it blue")

    await asyncio.gather(left.on_authenticated(U1), right.on_authenticated(U1))

    conversations = await store.find_many("conversations", {"user_id": "u1"})
    assert len(conversations) == 1
    turns = (await read_turns(store, conversations[0]["id"])).turns
    assert [t.content for t in turns if t.role == "user"] == ["make it blue"]
    assert len([t for t in turns if t.role == "assistant"]) == 1


@pytest.mark.asyncio
async def test_three_drafts_promote_to_three_answered_conversations() -> None:
    store = MemoryStore()
    provider = ScriptedReplyProvider(["reply A", "reply B", "reply C"])
    _, bridge = _tab(store, provider)
    for text in ("A", "B", "C"):
        await bridge.submit(text)

    report = await bridge.on_authenticated(U1)

    assert len({s.conversation_id for s in report.snapshots}) == 3
    for text, snapshot in zip(("A", "B", "C"), report.snapshots, strict=True):
        assert [(t.role, t.content) for t in snapshot.turns] == [
            ("user", text),
            ("assistant", f"reply {text}"),
        ]


@pytest.mark.asyncio
async def test_reload_reproduces_turns_without_new_conversation(
    tmp_path: Path,
) -> None:
    config = Config(
        use_mock=True, store_path=tmp_path / "chat.json", state_dir=tmp_path / "state"
    )
    engine = build_engine(config)
    chat = await engine.start_topic(U1, "design a logo")
    await chat.submit("make it blue")
    before = chat.current_turns()

    reloaded = build_engine(config)
    resumed = await reloaded.resume(U1)

    assert resumed is not None
    assert resumed.current_turns() == before
    fresh = await read_turns(reloaded.store, resumed.conversation_id)
    assert list(fresh.turns) == before
    assert len(await reloaded.list_conversations(U1)) == 1


@pytest.mark.asyncio
async def test_drafts_survive_restart_before_sign_in(tmp_path: Path) -> None:
    config = Config(
        use_mock=True, store_path=tmp_path / "chat.json", state_dir=tmp_path / "state"
    )
    first = build_engine(config)
    await SessionBridge(first, DraftHolding(first.slots)).submit("design a logo")

    restarted = build_engine(config)
    bridge = SessionBridge(restarted, DraftHolding(restarted.slots))
    report = await bridge.on_authenticated(U1)

    (snapshot,) = report.snapshots
    assert [t.content for t in snapshot.turns] == [
        "design a logo",
        "echo: design a logo",
    ]


@pytest.mark.asyncio
async def test_replies_racing_inside_provider_store_one_answer() -> None:
    store = MemoryStore()
    gate = GateReplyProvider(expected=2)
    left_engine, _ = _tab(store, gate)
    right_engine, _ = _tab(store, gate)
    left = await left_engine.open(U1, topic_key="p1")
    right = await right_engine.open(U1, topic_key="p1")
    assert left.conversation_id == right.conversation_id

    async def release_when_both_waiting() -> None:
        await gate.started.wait()
        gate.release.set()

    await asyncio.gather(
        left.submit("make it blue"),
        right.submit("make it blue"),
        release_when_both_waiting(),
    )

    assert gate.generate_calls == 2
    turns = (await read_turns(store, left.conversation_id)).turns
    assert [t.role for t in turns] == ["user", "assistant"]
    await left.refresh()
    await right.refresh()
    assert left.current_turns() == right.current_turns() == list(turns)
