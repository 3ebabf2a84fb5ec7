"""Store client protocol, schema and record helpers.

The engine talks to durable storage only through ``StoreClient``: create,
filtered reads and a single-row update. Idempotency rests on the unique
constraints declared in ``UNIQUE_CONSTRAINTS``, which every implementation
must enforce at create time by raising ``DuplicateKeyError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, Protocol

from chatsync.errors import DuplicateKeyError
from chatsync.types import CONVERSATIONS, MESSAGES, USER_PROMPTS

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

Direction = Literal["asc", "desc"]

# SQL NULL semantics: a None in any constrained column never collides.
UNIQUE_CONSTRAINTS: dict[str, tuple[tuple[str, ...], ...]] = {
    CONVERSATIONS: (("user_id", "prompt_id"),),
    MESSAGES: (
        ("conversation_id", "role", "content", "submission_key"),
        ("conversation_id", "reply_to"),
    ),
    USER_PROMPTS: (("user_id", "prompt"),),
}

TABLES: tuple[str, ...] = tuple(UNIQUE_CONSTRAINTS)


class StoreClient(Protocol):
    """Protocol for the durable, queryable record store."""

    async def create_record(
        self, table: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Insert a row and return it with store-assigned ``id``/``seq``/``created_at``.

        Raises:
            DuplicateKeyError: The row would violate a unique constraint.
        """
        ...

    async def find_one(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Sequence[tuple[str, Direction]] | None = None,
    ) -> dict[str, Any] | None:
        """Return the first matching row in ``order``, or None."""
        ...

    async def find_many(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Sequence[tuple[str, Direction]] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return all matching rows in ``order`` (``seq`` breaks ties)."""
        ...

    async def update_record(
        self, table: str, record_id: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Merge ``fields`` into an existing row and return it."""
        ...


def matches(record: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    """Equality filter: every filter key must be present and equal."""
    return all(k in record and record[k] == v for k, v in filters.items())


def sort_records(
    records: Iterable[dict[str, Any]],
    order: Sequence[tuple[str, Direction]] | None,
) -> list[dict[str, Any]]:
    """Sort rows by ``order``, always finishing with ascending ``seq``.

    None sorts after any value in ascending order (before in descending).
    """
    rows = sorted(records, key=lambda r: int(r.get("seq", 0)))
    for name, direction in reversed(tuple(order or ())):
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unknown sort direction: {direction!r}")
        rows.sort(
            key=lambda r, n=name: _sort_key(r.get(n)),
            reverse=direction == "desc",
        )
    return rows


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is None, "" if value is None else value)


def check_unique(
    table: str,
    rows: Iterable[Mapping[str, Any]],
    fields: Mapping[str, Any],
    *,
    exclude_id: str | None = None,
) -> None:
    """Raise DuplicateKeyError when ``fields`` collides with an existing row."""
    rows = [r for r in rows if exclude_id is None or r.get("id") != exclude_id]
    for constraint in UNIQUE_CONSTRAINTS.get(table, ()):
        key = tuple(fields.get(col) for col in constraint)
        if any(v is None for v in key):
            continue
        for row in rows:
            if tuple(row.get(col) for col in constraint) == key:
                raise DuplicateKeyError(
                    f"duplicate key value violates unique constraint on "
                    f"{table} ({', '.join(constraint)})",
                    table=table,
                    constraint=constraint,
                )
