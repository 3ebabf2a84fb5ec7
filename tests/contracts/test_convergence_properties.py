"""Convergence guarantees under concurrent writers.

Each example runs its own event loop so hypothesis can drive the number of
racing callers; ``MemoryStore(latency=...)`` yields on every call, which lets
the coroutines interleave between their pre-check read and their create.
"""

from __future__ import annotations

import asyncio

from hypothesis import assume, given, settings
from hypothesis import strategies as st
import pytest

from chatsync.appender import MessageAppender, read_turns
from chatsync.prompts import PromptRegistry
from chatsync.resolver import ConversationResolver
from chatsync.store.memory import MemoryStore

pytestmark = pytest.mark.contract

_content = st.text(
    alphabet=st.characters(exclude_categories=("Cs",)), min_size=1, max_size=40
).filter(lambda s: s.strip())


@given(n=st.integers(min_value=2, max_value=10), content=_content)
@settings(max_examples=15, deadline=None, derandomize=True)
def test_identical_concurrent_appends_store_one_turn(n: int, content: str) -> None:
    async def run() -> None:
        store = MemoryStore(latency=0.0005)
        cid = await ConversationResolver(store).resolve("u1", "topic")
        appender = MessageAppender(store)

        snapshots = await asyncio.gather(
            *(appender.append(cid, "user", content) for _ in range(n))
        )

        stored = await read_turns(store, cid)
        assert stored.count("user", content) == 1
        for snapshot in snapshots:
            assert snapshot.count("user", content) == 1

    asyncio.run(run())


@given(n=st.integers(min_value=2, max_value=10))
@settings(max_examples=15, deadline=None, derandomize=True)
def test_concurrent_resolves_return_one_id(n: int) -> None:
    async def run() -> None:
        store = MemoryStore(latency=0.0005)
        resolver = ConversationResolver(store)

        ids = await asyncio.gather(*(resolver.resolve("u1", "topic") for _ in range(n)))

        assert len(set(ids)) == 1
        rows = await store.find_many(
            "conversations", {"user_id": "u1", "prompt_id": "topic"}
        )
        assert len(rows) == 1

    asyncio.run(run())


@given(n=st.integers(min_value=2, max_value=10), text=_content)
@settings(max_examples=10, deadline=None, derandomize=True)
def test_concurrent_prompt_saves_return_one_prompt(n: int, text: str) -> None:
    async def run() -> None:
        store = MemoryStore(latency=0.0005)
        registry = PromptRegistry(store)

        prompts = await asyncio.gather(*(registry.ensure("u1", text) for _ in range(n)))

        assert len({p.id for p in prompts}) == 1

    asyncio.run(run())


@given(first=_content, second=_content)
@settings(max_examples=15, deadline=None, derandomize=True)
def test_racing_distinct_appends_both_present_in_creation_order(
    first: str, second: str
) -> None:
    assume(first != second)

    async def run() -> None:
        store = MemoryStore(latency=0.0005)
        cid = await ConversationResolver(store).resolve("u1", "topic")
        appender = MessageAppender(store)

        a, b = await asyncio.gather(
            appender.append(cid, "user", first),
            appender.append(cid, "user", second),
        )

        stored = await read_turns(store, cid)
        assert sorted(t.content for t in stored.turns) == sorted([first, second])
        created = [t.created_at for t in stored.turns]
        assert created == sorted(created)
        # The later reader sees everything the earlier one did.
        latest = a if a.version >= b.version else b
        assert latest.turns == stored.turns

    asyncio.run(run())


@given(n=st.integers(min_value=2, max_value=6))
@settings(max_examples=10, deadline=None, derandomize=True)
def test_racing_answers_to_one_turn_store_one_reply(n: int) -> None:
    async def run() -> None:
        store = MemoryStore(latency=0.0005)
        cid = await ConversationResolver(store).resolve("u1", "topic")
        appender = MessageAppender(store)
        user = (await appender.append(cid, "user", "question")).turns[0]

        await asyncio.gather(
            *(
                appender.append(
                    cid,
                    "assistant",
                    f"answer {i}",
                    submission_key=user.id,
                    reply_to=user.id,
                )
                for i in range(n)
            )
        )

        stored = await read_turns(store, cid)
        assert [t.role for t in stored.turns] == ["user", "assistant"]

    asyncio.run(run())
