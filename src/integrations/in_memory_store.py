"""In-memory table store backing the fallback data layer.

Each table is a plain list of row dictionaries kept in insertion order. The
store hands out identities itself: the first row of every table gets ``1``
and identities are never reused, even after rows are removed. Joins and
constraints are the caller's business.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from src.integrations.seed_parser import KNOWN_TABLES, SeedParseResult

LOGGER = logging.getLogger(__name__)

Row = dict[str, Any]
Predicate = Callable[[Row], bool]


@dataclass(slots=True)
class InMemoryStore:
    """Growable per-table collections with autoincrement identities."""

    table_names: Iterable[str] = KNOWN_TABLES
    _tables: dict[str, list[Row]] = field(init=False, default_factory=dict)
    _next_ids: dict[str, int] = field(init=False, default_factory=dict)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:
        for name in self.table_names:
            self._tables[name] = []
            self._next_ids[name] = 1

    @property
    def tables(self) -> list[str]:
        return list(self._tables)

    def _table(self, table: str) -> list[Row]:
        try:
            return self._tables[table]
        except KeyError:
            raise KeyError(f"Unknown table '{table}'") from None

    def insert(self, table: str, fields: Row) -> int:
        """Append *fields* to *table* and return the identity assigned to it."""

        with self._lock:
            rows = self._table(table)
            identity = self._next_ids[table]
            self._next_ids[table] = identity + 1
            row = {"id": identity}
            row.update((key, value) for key, value in fields.items() if key != "id")
            rows.append(row)
        return identity

    def filter(self, table: str, predicate: Predicate | None = None) -> list[Row]:
        """Return rows matching *predicate* in insertion order."""

        rows = self._table(table)
        if predicate is None:
            return list(rows)
        return [row for row in rows if predicate(row)]

    def first(self, table: str, predicate: Predicate) -> Row | None:
        for row in self._table(table):
            if predicate(row):
                return row
        return None

    def update(self, table: str, predicate: Predicate, patch: Row) -> bool:
        """Apply *patch* to the first matching row. Returns whether one matched."""

        with self._lock:
            for row in self._table(table):
                if predicate(row):
                    row.update({key: value for key, value in patch.items() if key != "id"})
                    return True
        return False

    def remove(self, table: str, predicate: Predicate) -> int:
        """Delete every matching row and return how many were removed."""

        with self._lock:
            rows = self._table(table)
            kept = [row for row in rows if not predicate(row)]
            removed = len(rows) - len(kept)
            rows[:] = kept
        return removed

    def count(self, table: str) -> int:
        return len(self._table(table))

    @classmethod
    def from_seed(cls, seed: SeedParseResult) -> InMemoryStore:
        """Build a store holding every row of *seed*, in seed order."""

        store = cls()
        for table, rows in seed.tables.items():
            if table not in store._tables:
                continue
            for row in rows:
                assigned = store.insert(table, row)
                declared = row.get("id")
                if declared is not None and declared != assigned:
                    LOGGER.warning(
                        "Seed row for %s declared id=%s but was stored as id=%s",
                        table,
                        declared,
                        assigned,
                    )
        return store
