"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off store and provider subclasses as coverage expands.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from chatsync.errors import DuplicateKeyError, StoreUnavailableError
from chatsync.providers.models import ReplyRequest, ReplyResponse
from chatsync.store.memory import MemoryStore


@dataclass
class ScriptedReplyProvider:
    """Provider that returns a scripted sequence of texts/exceptions."""

    script: list[str | BaseException] = field(default_factory=list)
    generate_calls: int = 0

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        _ = request
        self.generate_calls += 1
        if not self.script:
            return ReplyResponse(text="ok")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return ReplyResponse(text=item)


@dataclass
class GateReplyProvider:
    """Provider that blocks until released, then answers with a per-call label.

    Used to line up two callers inside the reply call at the same time.
    """

    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)
    waiting: int = 0
    expected: int = 2
    generate_calls: int = 0

    async def generate(self, request: ReplyRequest) -> ReplyResponse:
        _ = request
        self.generate_calls += 1
        label = self.generate_calls
        self.waiting += 1
        if self.waiting >= self.expected:
            self.started.set()
        await self.release.wait()
        return ReplyResponse(text=f"reply #{label}")


class FailingStore(MemoryStore):
    """MemoryStore that raises StoreUnavailableError for chosen (op, table) pairs.

    ``op`` is one of ``"create"``, ``"find"`` or ``"update"``.
    """

    def __init__(self, *, fail: set[tuple[str, str]] | None = None) -> None:
        super().__init__()
        self.fail: set[tuple[str, str]] = set(fail or ())

    def _check(self, op: str, table: str) -> None:
        if (op, table) in self.fail:
            raise StoreUnavailableError(f"{op} on {table} unavailable")

    async def create_record(self, table: str, fields: Any) -> dict[str, Any]:
        self._check("create", table)
        return await super().create_record(table, fields)

    async def find_many(self, table: str, filters: Any, order: Any = (), limit=None):
        self._check("find", table)
        return await super().find_many(table, filters, order, limit)

    async def update_record(
        self, table: str, record_id: str, fields: Any
    ) -> dict[str, Any]:
        self._check("update", table)
        return await super().update_record(table, record_id, fields)


class LyingStore(MemoryStore):
    """MemoryStore whose creates always claim a duplicate without writing."""

    async def create_record(self, table: str, fields: Any) -> dict[str, Any]:
        await self._round_trip()
        raise DuplicateKeyError(
            "duplicate key value", table=table, constraint=("id",)
        )
