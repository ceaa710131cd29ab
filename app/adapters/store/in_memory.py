"""In-process record store.

Notes:
- Per-process only: running multiple workers gives each worker its own
  event log and its own rate-limit ledger.
- Thread-safe: uses a lock around shared state.
- Nothing is ever pruned; fine for development and tests.
"""

from __future__ import annotations

import threading
from typing import Sequence

from app.adapters.store.base import AbstractRecordStore, Filter, Record, StoreError


def _matches(record: Record, filters: Sequence[Filter]) -> bool:
    for flt in filters:
        value = record.get(flt.field)
        if flt.op == "eq":
            if value != flt.value:
                return False
        elif flt.op == "gte":
            if value is None or value < flt.value:
                return False
        else:
            raise StoreError(f"unsupported filter operator: {flt.op}")
    return True


class InMemoryRecordStore(AbstractRecordStore):
    """Record store keeping every table as an append-only list."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[str, list[Record]] = {}

    def insert_one(self, table: str, record: Record) -> Record:
        stored = dict(record)
        with self._lock:
            self._tables.setdefault(table, []).append(stored)
        return dict(stored)

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        with self._lock:
            rows = list(self._tables.get(table, ()))
        return sum(1 for row in rows if _matches(row, filters))

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        with self._lock:
            rows = [row for row in self._tables.get(table, ()) if _matches(row, filters)]

        if order_by is not None:
            if descending:
                # sort() is stable: reversing first keeps ties newest-first
                rows.reverse()
            rows.sort(key=lambda row: row[order_by], reverse=descending)

        if limit is not None:
            rows = rows[: max(0, limit)]

        return [dict(row) for row in rows]
