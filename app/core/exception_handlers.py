"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → 400 / 429 / 500, with X-RateLimit-* headers when the
  error carries rate-limit accounting
- Malformed request bodies → 400 invalid_input
- Unexpected Exception → generic 500 (safety net)
- Errors on the metered events API without accounting of their own get the
  caller's current window as headers
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.core.client_address import resolve_caller_address
from app.core.errors import AppError, RateLimitedAppError, StoreUnavailableAppError
from app.core.logging import get_request_id
from app.core.rate_limit import (
    METERED_TAG,
    headers_enabled,
    rate_limit_headers,
    rate_limit_headers_from_details,
)

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, StoreUnavailableAppError):
        return 500
    return 400


def current_window_headers(request: Request) -> dict[str, str]:
    """Rate-limit headers from a read-only look at the caller's window.

    Used for failures that happen before the contact service meters the
    call (unparseable bodies, bad query parameters, unexpected errors).
    Returns an empty dict outside the metered events API.
    """
    scope = getattr(request, "scope", None)
    route = scope.get("route") if isinstance(scope, dict) else None
    if METERED_TAG not in (getattr(route, "tags", None) or []):
        return {}
    if not headers_enabled(request.app):
        return {}

    service = getattr(request.app.state, "contact_service", None)
    if service is None:
        return {}

    peer = request.client.host if request.client else None
    status = service.limiter.status(resolve_caller_address(request.headers, peer))
    return rate_limit_headers(
        limit=status.limit,
        remaining=status.remaining,
        reset_at=status.reset_at,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - ValidationAppError → 400 Bad Request (client fault)
    - RateLimitedAppError → 429 Too Many Requests (wait and retry)
    - StoreUnavailableAppError → 500 Internal Server Error (server fault)

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code, error details and
        rate-limit headers.
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = rate_limit_headers_from_details(exc.details, enabled=headers_enabled(request.app))
    if not headers:
        headers = await run_in_threadpool(current_window_headers, request)

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render unparseable or wrongly-typed request bodies as 400 invalid_input."""

    logger.warning(
        "request_validation_failed",
        extra={
            "request_path": request.url.path,
            "error_count": len(exc.errors()),
            "request_id": get_request_id(),
        },
    )
    headers = await run_in_threadpool(current_window_headers, request)

    return JSONResponse(
        status_code=400,
        headers=headers or None,
        content={
            "error": {
                "code": "invalid_input",
                "message": "Invalid request body or parameters",
                "request_id": get_request_id(),
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or internal details reach the client.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    headers = await run_in_threadpool(current_window_headers, request)

    return JSONResponse(
        status_code=500,
        headers=headers or None,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "Internal server error",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
