"""Generic record-store interface.

The service needs three capabilities from its persistence layer: insert one
record, count records matching a filter, and select records matching a filter
with ordering and a limit. Anything that provides those (an in-process list,
a SQL database, a hosted table API) can back both the event log and the
rate-limit ledger.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal, Sequence

EVENTS_TABLE = "contact_events"
RATE_LIMITS_TABLE = "rate_limits"

Record = dict[str, Any]


class StoreError(Exception):
    """Raised by store backends when the underlying storage fails."""


@dataclass(frozen=True)
class Filter:
    """A single field predicate. Filters passed together are AND-ed.

    Attributes:
        field: Record field name.
        op: ``"eq"`` for equality, ``"gte"`` for greater-than-or-equal.
        value: Value to compare against.
    """

    field: str
    op: Literal["eq", "gte"]
    value: Any

    @classmethod
    def eq(cls, field: str, value: Any) -> "Filter":
        return cls(field=field, op="eq", value=value)

    @classmethod
    def gte(cls, field: str, value: Any) -> "Filter":
        return cls(field=field, op="gte", value=value)


class AbstractRecordStore(ABC):
    """Interface for record stores."""

    @abstractmethod
    def insert_one(self, table: str, record: Record) -> Record:
        """Persist a single record and return it as stored.

        Raises:
            StoreError: If the record cannot be written.
        """
        raise NotImplementedError

    @abstractmethod
    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        """Count records matching all filters.

        Raises:
            StoreError: If the table cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        """Select records matching all filters.

        Records with equal ``order_by`` values come back in insertion order
        (newest first when ``descending``).

        Raises:
            StoreError: If the table cannot be read.
        """
        raise NotImplementedError
