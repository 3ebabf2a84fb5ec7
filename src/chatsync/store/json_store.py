"""Durable single-file JSON record store.

Uses copy-on-write: write to a temp file and rename for atomicity. Shape on
disk:
  {
    "tables": {
      "conversations": [{"id":..., "user_id":..., "prompt_id":..., ...}, ...],
      "messages": [...],
      "user_prompts": [...]
    }
  }
Every operation re-reads the file, so writes from other store instances
pointing at the same path are observed on the next call.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

from chatsync.errors import StoreUnavailableError
from chatsync.store.base import TABLES
from chatsync.store.memory import MemoryStore, Tables

if TYPE_CHECKING:
    import os


class JSONStore(MemoryStore):
    """Record store persisted to one JSON file."""

    def __init__(
        self, path: str | os.PathLike[str], *, latency: float = 0.0
    ) -> None:
        """Initialize the store pointing at a JSON file path."""
        super().__init__(latency=latency)
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Location of the backing file."""
        return self._path

    def _load(self) -> Tables:
        """Read and deserialize the whole file into a table mapping."""
        tables: Tables = {name: [] for name in TABLES}
        if not self._path.exists():
            return tables
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreUnavailableError(
                f"Could not read store file {self._path}",
                hint="Check the file is readable and contains valid JSON.",
            ) from e
        stored = raw.get("tables") if isinstance(raw, dict) else None
        if not isinstance(stored, dict):
            raise StoreUnavailableError(
                f"Store file {self._path} has no 'tables' mapping"
            )
        for name, rows in stored.items():
            if isinstance(rows, list):
                tables[name] = [r for r in rows if isinstance(r, dict)]
        return tables

    def _save(self, tables: Tables) -> None:
        """Persist tables atomically via temp file rename."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps({"tables": tables}, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            raise StoreUnavailableError(
                f"Could not write store file {self._path}"
            ) from e
