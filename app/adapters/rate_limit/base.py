"""Rate limiter interfaces.

The operation layer depends on this abstraction, not on the concrete
sliding-window implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Requests left in the window after this one (0 when blocked).
        reset_at: UNIX epoch seconds estimate of when the quota frees up.
        retry_after_seconds: Suggested wait time in seconds when blocked.
        degraded: True when the ledger could not be consulted and the
            request was admitted anyway (fail open).
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None
    degraded: bool = False


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of a caller's current window.

    Attributes:
        count: Requests recorded within the trailing window.
        limit: Max requests per window.
        remaining: Requests still available.
        window_seconds: Size of the sliding window.
        reset_at: UNIX epoch seconds estimate of when the window frees up.
        degraded: True when the ledger could not be read.
    """

    count: int
    limit: int
    remaining: int
    window_seconds: int
    reset_at: int
    degraded: bool = False


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @property
    @abstractmethod
    def limit(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def window_seconds(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def check_and_record(self, key: str, now: datetime | None = None) -> RateLimitResult:
        """Decide admission for ``key`` and charge the window when admitted.

        Args:
            key: Caller identity (e.g., resolved client address).
            now: Evaluation time; defaults to the limiter's clock.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def status(self, key: str, now: datetime | None = None) -> RateLimitStatus:
        """Report the current window for ``key`` without charging it."""
        raise NotImplementedError
