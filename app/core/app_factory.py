from __future__ import annotations

"""Application factory for FastAPI app.

Builds the record store, limiter, event store and contact service once per
application and keeps them on ``app.state``; routers reach them through
dependencies so tests can pass in a service wired to a substitute store.
"""

import logging

from fastapi import FastAPI

from app.adapters.store.factory import create_record_store
from app.api.routes import events_router, health_router, mcp_router
from app.core.config import SERVICE_VERSION, AppSettings, settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter
from app.services.contact_service import ContactService
from app.services.event_store import EventStore

logger = logging.getLogger(__name__)


def build_contact_service(app_settings: AppSettings | None = None) -> ContactService:
    """Wire the configured store, limiter and event store into a service."""

    cfg = app_settings or settings.app
    store = create_record_store(cfg)
    return ContactService(
        limiter=build_rate_limiter(store, cfg),
        events=EventStore(store, max_limit=cfg.events_max_limit),
        default_limit=cfg.events_default_limit,
    )


def create_app(
    contact_service: ContactService | None = None,
    *,
    app_settings: AppSettings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        contact_service: Optional pre-built service (tests); built from
            settings when omitted.
        app_settings: Optional application settings; defaults to the global
            settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)
    cfg = app_settings or settings.app

    app = FastAPI(
        title="Contact Authorities API",
        description=(
            "Log 'contact the authorities' events and list recent ones. The same "
            "operations are available as a JSON REST API and as agent tools over "
            "JSON-RPC (MCP). Every write and listing is rate limited per caller "
            "address with a sliding window."
        ),
        version=SERVICE_VERSION,
        debug=cfg.debug,
    )

    app.state.contact_service = contact_service or build_contact_service(cfg)
    app.state.rate_limit_include_headers = cfg.rate_limit_include_headers

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(events_router, prefix="/api")
    app.include_router(mcp_router, prefix="/api")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "app_env": settings.app_env,
            "store_backend": cfg.store_backend,
            "rate_limit": cfg.rate_limit_requests,
            "window_s": cfg.rate_limit_window_seconds,
        },
    )
    return app
