"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Rate-limit accounting (limit, remaining, reset_at, retry_after) is
    attached by the operation layer so every adapter can expose it.
    """

    hint: str
    missing_fields: list[str]
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when a required field is missing or empty."""


class RateLimitedAppError(AppError):
    """Raised when the caller has exhausted its quota for the current window."""


class StoreUnavailableAppError(AppError):
    """Raised when the backing record store fails.

    The message is always generic; the underlying cause is only logged.
    """
