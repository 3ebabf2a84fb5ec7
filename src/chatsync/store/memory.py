"""In-process record store with the same uniqueness semantics as a real one."""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING, Any
import uuid

from chatsync.errors import StoreError
from chatsync.store.base import TABLES, check_unique, matches, sort_records
from chatsync.types import utcnow_iso

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from chatsync.store.base import Direction

Tables = dict[str, list[dict[str, Any]]]


class MemoryStore:
    """Record store held in a dict of tables.

    Every operation yields to the event loop before touching data (after
    an optional ``latency`` sleep), so concurrent coroutines interleave the
    way separate clients of a remote store would. Subclasses persist the
    tables by overriding ``_load`` and ``_save``.
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        """Initialize an empty store; ``latency`` simulates a round trip."""
        self._latency = latency
        self._lock = asyncio.Lock()
        self._tables: Tables = {name: [] for name in TABLES}
        self._seq = 0

    async def create_record(
        self, table: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Insert a row, enforcing unique constraints."""
        await self._round_trip()
        async with self._lock:
            tables = self._load()
            rows = tables.setdefault(table, [])
            check_unique(table, rows, fields)
            self._seq = max(self._seq, _max_seq(tables)) + 1
            record = dict(fields)
            record.setdefault("id", uuid.uuid4().hex)
            record.setdefault("created_at", utcnow_iso())
            record["seq"] = self._seq
            rows.append(record)
            self._save(tables)
            return copy.deepcopy(record)

    async def find_one(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Sequence[tuple[str, Direction]] | None = None,
    ) -> dict[str, Any] | None:
        """Return the first matching row, or None."""
        rows = await self.find_many(table, filters, order or (), limit=1)
        return rows[0] if rows else None

    async def find_many(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Sequence[tuple[str, Direction]] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching rows in order."""
        await self._round_trip()
        async with self._lock:
            rows = [r for r in self._load().get(table, []) if matches(r, filters)]
        ordered = sort_records(rows, order)
        if limit is not None:
            ordered = ordered[:limit]
        return copy.deepcopy(ordered)

    async def update_record(
        self, table: str, record_id: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Merge fields into an existing row."""
        await self._round_trip()
        async with self._lock:
            tables = self._load()
            rows = tables.get(table, [])
            for row in rows:
                if row.get("id") == record_id:
                    merged = {**row, **fields, "id": row["id"], "seq": row["seq"]}
                    check_unique(table, rows, merged, exclude_id=record_id)
                    row.update(merged)
                    self._save(tables)
                    return copy.deepcopy(row)
        raise StoreError(f"No {table} record with id {record_id!r}")

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)

    def _load(self) -> Tables:
        return self._tables

    def _save(self, tables: Tables) -> None:
        self._tables = tables


def _max_seq(tables: Tables) -> int:
    return max(
        (int(r.get("seq", 0)) for rows in tables.values() for r in rows), default=0
    )
