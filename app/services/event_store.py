"""Append-only log of contact events on top of the record store."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from app.adapters.store.base import EVENTS_TABLE, AbstractRecordStore, Filter, StoreError
from app.core.errors import StoreUnavailableAppError, ValidationAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

# Suggested authority kinds. Advisory only: writes accept any non-empty target.
AUTHORITY_TARGETS: tuple[str, ...] = ("police", "fire", "medical", "fbi", "cybercrime", "local")

REQUIRED_FIELDS: tuple[str, ...] = ("title", "target", "description")

MIN_LIST_LIMIT = 1
MAX_LIST_LIMIT = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_event_id(now: datetime) -> str:
    """Build an opaque event id such as ``event_1760000000000_3f9a1c2b7``."""

    return f"event_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class ContactEventInput:
    title: Any
    target: Any
    description: Any
    caller_address: str


@dataclass(frozen=True)
class ContactEvent:
    """A stored contact event. Immutable once created."""

    id: str
    title: str
    target: str
    description: str
    caller_address: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ContactEvent":
        return cls(
            id=record["id"],
            title=record["title"],
            target=record["target"],
            description=record["description"],
            caller_address=record["caller_address"],
            created_at=record["created_at"],
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "target": self.target,
            "description": self.description,
            "caller_address": self.caller_address,
            "created_at": self.created_at,
        }


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_fields(title: Any, target: Any, description: Any) -> dict[str, str]:
    """Trim the required text fields and reject any that end up empty.

    Returns:
        Mapping of field name to trimmed value.

    Raises:
        ValidationAppError: If any required field is missing or blank.
    """
    cleaned = {
        "title": _clean(title),
        "target": _clean(target),
        "description": _clean(description),
    }
    missing = [name for name in REQUIRED_FIELDS if not cleaned[name]]
    if missing:
        raise ValidationAppError(
            code="invalid_input",
            message="Missing required fields: title, target, description",
            details={"missing_fields": missing},
        )
    return cleaned


def clamp_limit(limit: Any, default: int = 20, maximum: int = MAX_LIST_LIMIT) -> int:
    """Coerce a requested list size into [1, maximum]."""

    try:
        value = int(limit) if limit is not None else default
    except (TypeError, ValueError):
        value = default
    return max(MIN_LIST_LIMIT, min(maximum, value))


class EventStore:
    """Insert and most-recent-first retrieval of contact events.

    Attributes:
        store: Record store holding the ``contact_events`` table.
    """

    def __init__(
        self,
        store: AbstractRecordStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[datetime], str] = generate_event_id,
        max_limit: int = MAX_LIST_LIMIT,
    ) -> None:
        self.store = store
        self.max_limit = max_limit
        self._clock = clock
        self._id_factory = id_factory

    def insert(self, event: ContactEventInput, now: datetime | None = None) -> ContactEvent:
        """Validate, stamp and persist a new contact event.

        Raises:
            ValidationAppError: If title, target or description is blank.
            StoreUnavailableAppError: If the record store fails.
        """
        fields = normalize_fields(event.title, event.target, event.description)
        created_at = now or self._clock()

        stored = ContactEvent(
            id=self._id_factory(created_at),
            title=fields["title"],
            target=fields["target"],
            description=fields["description"],
            caller_address=event.caller_address,
            created_at=created_at,
        )

        try:
            record = self.store.insert_one(EVENTS_TABLE, stored.to_record())
        except StoreError as exc:
            logger.error(
                "events.insert_failed",
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Failed to log contact event",
            ) from exc

        logger.info(
            "events.recorded",
            extra={
                "event_id": stored.id,
                "title": stored.title,
                "target": stored.target,
                "caller_hash": hash_identifier(stored.caller_address),
                "created_at": stored.created_at.isoformat(),
            },
        )
        return ContactEvent.from_record(record)

    def list_recent(self, limit: int = 20, target: str | None = None) -> list[ContactEvent]:
        """Return up to ``limit`` events, newest first.

        Args:
            limit: Requested size, clamped to [1, max_limit].
            target: When given, only events whose target equals it exactly.

        Raises:
            StoreUnavailableAppError: If the record store fails.
        """
        filters = [Filter.eq("target", target)] if target else []

        try:
            records = self.store.select(
                EVENTS_TABLE,
                filters,
                order_by="created_at",
                descending=True,
                limit=clamp_limit(limit, maximum=self.max_limit),
            )
        except StoreError as exc:
            logger.error(
                "events.list_failed",
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Failed to fetch events",
            ) from exc

        return [ContactEvent.from_record(record) for record in records]
