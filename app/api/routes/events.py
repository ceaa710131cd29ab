"""REST endpoints for filing and listing contact events."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.dependencies import (
    get_caller_address,
    get_contact_service,
    get_rate_limit_headers_enabled,
)
from app.core.rate_limit import rate_limit_headers
from app.schemas.events import (
    ContactEventCreatedResponse,
    ContactEventListResponse,
    ContactEventRequest,
    ContactEventView,
    RateLimitStatusResponse,
)
from app.services.contact_service import ContactService

router = APIRouter(prefix="/contact-authorities", tags=["Events"])

ServiceDep = Annotated[ContactService, Depends(get_contact_service)]
CallerDep = Annotated[str, Depends(get_caller_address)]
HeadersEnabledDep = Annotated[bool, Depends(get_rate_limit_headers_enabled)]


# Handlers are plain functions: the record store is synchronous, so FastAPI
# runs them in its threadpool instead of blocking the event loop.


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ContactEventCreatedResponse,
    responses={400: {"description": "Missing required fields"}, 429: {"description": "Rate limited"}},
)
def create_contact_event(
    body: ContactEventRequest,
    response: Response,
    service: ServiceDep,
    caller_address: CallerDep,
    headers_enabled: HeadersEnabledDep,
) -> ContactEventCreatedResponse:
    """Log a new contact event.

    Every response carries X-RateLimit-Limit, X-RateLimit-Remaining and
    X-RateLimit-Reset. Errors are rendered by the global exception handlers.
    """
    result = service.record_event(
        caller_address,
        title=body.title,
        target=body.target,
        description=body.description,
    )

    response.headers.update(
        rate_limit_headers(
            limit=result.rate_limit.limit,
            remaining=result.rate_limit.remaining,
            reset_at=result.rate_limit.reset_at,
            enabled=headers_enabled,
        )
    )
    return ContactEventCreatedResponse(eventId=result.event.id)


@router.get("", response_model=ContactEventListResponse)
def list_contact_events(
    response: Response,
    service: ServiceDep,
    caller_address: CallerDep,
    headers_enabled: HeadersEnabledDep,
    limit: Annotated[int | None, Query(description="Maximum events to return (clamped to 1-100)")] = None,
    target: Annotated[str | None, Query(description="Only events for this exact target")] = None,
) -> ContactEventListResponse:
    """Return the most recent contact events, newest first."""

    result = service.list_events(caller_address, limit=limit, target=target)

    response.headers.update(
        rate_limit_headers(
            limit=result.rate_limit.limit,
            remaining=result.rate_limit.remaining,
            reset_at=result.rate_limit.reset_at,
            enabled=headers_enabled,
        )
    )
    return ContactEventListResponse(
        events=[ContactEventView.from_event(event) for event in result.events],
        total=len(result.events),
    )


@router.get("/status", response_model=RateLimitStatusResponse)
def rate_limit_status(
    response: Response,
    service: ServiceDep,
    caller_address: CallerDep,
    headers_enabled: HeadersEnabledDep,
) -> RateLimitStatusResponse:
    """Report the caller's current window. Not metered."""

    current = service.limiter_status(caller_address)

    response.headers.update(
        rate_limit_headers(
            limit=current.limit,
            remaining=current.remaining,
            reset_at=current.reset_at,
            enabled=headers_enabled,
        )
    )
    return RateLimitStatusResponse(
        ip=caller_address,
        count=current.count,
        limit=current.limit,
        remaining=current.remaining,
        window_seconds=current.window_seconds,
    )
