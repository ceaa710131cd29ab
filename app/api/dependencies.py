"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from app.core.client_address import resolve_caller_address
from app.core.rate_limit import headers_enabled
from app.services.contact_service import ContactService


def get_contact_service(request: Request) -> ContactService:
    """Return the service built by the app factory for this application."""

    return request.app.state.contact_service


def get_caller_address(request: Request) -> str:
    """Resolve the caller address from this request's headers and peer."""

    peer = request.client.host if request.client else None
    return resolve_caller_address(request.headers, peer)


def get_rate_limit_headers_enabled(request: Request) -> bool:
    """Whether this application renders X-RateLimit-* headers."""

    return headers_enabled(request.app)
