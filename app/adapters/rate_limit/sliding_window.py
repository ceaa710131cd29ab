"""Sliding-window rate limiter backed by the record store ledger.

Notes:
- Stateless: the ledger table is the single source of truth, shared by every
  worker using the same store.
- Count-then-insert is NOT atomic. Concurrent requests from one caller can
  all observe a count below the limit and all be admitted, so the window can
  overshoot by at most the number of racing requests. No lock or
  transaction is taken here.
- Fails open: if the ledger cannot be read or written, the request is
  admitted and the failure is logged.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult, RateLimitStatus
from app.adapters.store.base import RATE_LIMITS_TABLE, AbstractRecordStore, Filter
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Admit at most ``limit`` requests per key in any trailing window.

    Only admitted requests are written to the ledger; rejected attempts are
    not charged against the window.
    """

    def __init__(
        self,
        store: AbstractRecordStore,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Record store holding the rate-limit ledger table.
            limit: Maximum number of admitted requests per window.
            window_seconds: Size of the sliding window in seconds.
            clock: Time source returning an aware UTC datetime.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _reset_at(self, now: datetime) -> int:
        return int(math.ceil(now.timestamp())) + self._window_seconds

    def _count_in_window(self, key: str, now: datetime) -> int:
        window_start = now - timedelta(seconds=self._window_seconds)
        return self._store.count(
            RATE_LIMITS_TABLE,
            [Filter.eq("caller_address", key), Filter.gte("created_at", window_start)],
        )

    def check_and_record(self, key: str, now: datetime | None = None) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = now or self._clock()
        reset_at = self._reset_at(now)

        try:
            count = self._count_in_window(key, now)

            if count >= self._limit:
                logger.warning(
                    "rate_limit.exceeded",
                    extra={
                        "key_hash": hash_identifier(key),
                        "limit": self._limit,
                        "count": count,
                        "window_s": self._window_seconds,
                    },
                )
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after_seconds=self._window_seconds,
                )

            self._store.insert_one(
                RATE_LIMITS_TABLE,
                {"caller_address": key, "created_at": now},
            )
        except Exception:
            # Fail open: admit and report the caller as degraded.
            logger.error(
                "rate_limit.fail_open",
                exc_info=True,
                extra={
                    "key_hash": hash_identifier(key),
                    "limit": self._limit,
                    "window_s": self._window_seconds,
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=self._limit - 1,
                reset_at=reset_at,
                retry_after_seconds=None,
                degraded=True,
            )

        remaining = self._limit - count - 1
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_identifier(key),
                "limit": self._limit,
                "remaining": remaining,
                "window_s": self._window_seconds,
            },
        )
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=None,
        )

    def status(self, key: str, now: datetime | None = None) -> RateLimitStatus:
        now = now or self._clock()
        reset_at = self._reset_at(now)

        try:
            count = self._count_in_window(key, now)
        except Exception:
            logger.error(
                "rate_limit.status_unavailable",
                exc_info=True,
                extra={"key_hash": hash_identifier(key)},
            )
            return RateLimitStatus(
                count=0,
                limit=self._limit,
                remaining=self._limit,
                window_seconds=self._window_seconds,
                reset_at=reset_at,
                degraded=True,
            )

        return RateLimitStatus(
            count=count,
            limit=self._limit,
            remaining=max(0, self._limit - count),
            window_seconds=self._window_seconds,
            reset_at=reset_at,
        )
