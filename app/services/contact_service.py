"""Contact service: the operations shared by every protocol front end.

Both the REST router and the tool router call into this service, so rate
limiting, validation and persistence behave identically no matter how a
request arrives. The service raises AppError subclasses; each adapter
renders them in its own wire format.

Every error raised here carries rate-limit accounting in ``details``
(``limit``, ``remaining``, ``reset_at``) so adapters can report the caller's
budget on failures as well as successes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult, RateLimitStatus
from app.core.errors import AppError, RateLimitedAppError, StoreUnavailableAppError, ValidationAppError
from app.core.logging import hash_identifier
from app.services.event_store import ContactEvent, ContactEventInput, EventStore, normalize_fields

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_window(window_seconds: int) -> str:
    """Human wording for a window size ("minute", "30 seconds", ...)."""

    if window_seconds == 60:
        return "minute"
    if window_seconds % 60 == 0:
        return f"{window_seconds // 60} minutes"
    return f"{window_seconds} seconds"


@dataclass(frozen=True)
class RecordEventResult:
    event: ContactEvent
    rate_limit: RateLimitResult


@dataclass(frozen=True)
class ListEventsResult:
    events: list[ContactEvent]
    rate_limit: RateLimitResult
    target: str | None = None


class ContactService:
    """Operation layer composing the rate limiter and the event store.

    Attributes:
        limiter: Sliding-window limiter keyed by caller address.
        events: Event store used for inserts and listings.
        default_limit: List size used when the caller does not give one.
    """

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        events: EventStore,
        *,
        default_limit: int = 20,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.limiter = limiter
        self.events = events
        self.default_limit = default_limit
        self._clock = clock

    def _attach_rate_details(self, exc: AppError, *, remaining: int, reset_at: int) -> AppError:
        details = dict(exc.details or {})
        details.update(limit=self.limiter.limit, remaining=remaining, reset_at=reset_at)
        exc.details = details  # type: ignore[assignment]
        return exc

    def _admit(self, caller_address: str, operation: str, now: datetime) -> RateLimitResult:
        decision = self.limiter.check_and_record(caller_address, now)
        if decision.allowed:
            return decision

        logger.warning(
            "contact.rate_limited",
            extra={
                "operation": operation,
                "caller_hash": hash_identifier(caller_address),
                "limit": decision.limit,
            },
        )
        raise RateLimitedAppError(
            code="rate_limited",
            message=(
                f"Rate limit exceeded. Maximum {decision.limit} requests per "
                f"{describe_window(self.limiter.window_seconds)}."
            ),
            details={
                "limit": decision.limit,
                "remaining": 0,
                "reset_at": decision.reset_at,
                "retry_after": decision.retry_after_seconds or self.limiter.window_seconds,
            },
        )

    def record_event(
        self,
        caller_address: str,
        title: Any,
        target: Any,
        description: Any,
        now: datetime | None = None,
    ) -> RecordEventResult:
        """Log a contact event for ``caller_address``.

        The limiter is consulted first: every attempt, valid or not, is
        metered, and a caller over quota gets RateLimited before its fields
        are looked at.

        Raises:
            RateLimitedAppError: If the caller's window is full.
            ValidationAppError: If title, target or description is blank.
            StoreUnavailableAppError: If the event could not be stored.
        """
        now = now or self._clock()
        decision = self._admit(caller_address, "record_event", now)

        try:
            fields = normalize_fields(title, target, description)
            event = self.events.insert(
                ContactEventInput(caller_address=caller_address, **fields),
                now=now,
            )
        except (ValidationAppError, StoreUnavailableAppError) as exc:
            raise self._attach_rate_details(
                exc, remaining=decision.remaining, reset_at=decision.reset_at
            )

        return RecordEventResult(event=event, rate_limit=decision)

    def list_events(
        self,
        caller_address: str,
        limit: int | None = None,
        target: str | None = None,
        now: datetime | None = None,
    ) -> ListEventsResult:
        """Return the most recent events, metered like writes.

        Raises:
            RateLimitedAppError: If the caller's window is full.
            StoreUnavailableAppError: If the events could not be read.
        """
        now = now or self._clock()
        decision = self._admit(caller_address, "list_events", now)

        # Exact match on the stored value; a blank filter means no filter.
        target = target if isinstance(target, str) and target.strip() else None
        try:
            events = self.events.list_recent(
                limit if limit is not None else self.default_limit,
                target=target,
            )
        except StoreUnavailableAppError as exc:
            raise self._attach_rate_details(
                exc, remaining=decision.remaining, reset_at=decision.reset_at
            )

        return ListEventsResult(events=events, rate_limit=decision, target=target)

    def limiter_status(self, caller_address: str, now: datetime | None = None) -> RateLimitStatus:
        """Report the caller's current window. Never consumes a slot.

        Raises:
            StoreUnavailableAppError: If the ledger could not be read.
        """
        status = self.limiter.status(caller_address, now or self._clock())
        if status.degraded:
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Unable to check rate limit status",
                details={
                    "limit": status.limit,
                    "remaining": status.remaining,
                    "reset_at": status.reset_at,
                },
            )
        return status
