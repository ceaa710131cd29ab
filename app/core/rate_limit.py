"""Rate limiting wiring for the HTTP layer.

This module builds the configured limiter and renders its accounting as
response headers. Admission itself happens in the contact service, so both
protocol front ends are metered by the same code path.
"""

from __future__ import annotations

from typing import Any, Mapping

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.adapters.store.base import AbstractRecordStore
from app.core.config import AppSettings, settings

# Router tag of the metered REST endpoints; their responses always carry
# rate-limit headers, errors included.
METERED_TAG = "Events"


def build_rate_limiter(
    store: AbstractRecordStore,
    app_settings: AppSettings | None = None,
) -> AbstractRateLimiter:
    """Create the sliding-window limiter over the given store's ledger."""

    cfg = app_settings or settings.app
    return SlidingWindowRateLimiter(
        store,
        limit=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
    )


def headers_enabled(app: Any) -> bool:
    """Whether ``app`` was created with rate-limit headers switched on."""

    return getattr(app.state, "rate_limit_include_headers", True)


def rate_limit_headers(
    *,
    limit: int,
    remaining: int,
    reset_at: int,
    retry_after: int | None = None,
    enabled: bool = True,
) -> dict[str, str]:
    """Build X-RateLimit-* headers (plus Retry-After when throttled).

    Returns an empty dict when ``enabled`` is false.
    """

    if not enabled:
        return {}

    headers = {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(max(0, remaining)),
        "X-RateLimit-Reset": str(reset_at),
    }
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return headers


def rate_limit_headers_from_details(
    details: Mapping | None,
    *,
    enabled: bool = True,
) -> dict[str, str]:
    """Headers for an error response, from the accounting in AppError.details."""

    if not details or "limit" not in details or "reset_at" not in details:
        return {}

    return rate_limit_headers(
        limit=int(details["limit"]),
        remaining=int(details.get("remaining", 0)),
        reset_at=int(details["reset_at"]),
        retry_after=details.get("retry_after"),
        enabled=enabled,
    )
