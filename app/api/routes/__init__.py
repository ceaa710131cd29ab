from __future__ import annotations

from app.api.routes.events import router as events_router
from app.api.routes.health import router as health_router
from app.api.routes.mcp import router as mcp_router

__all__ = ["events_router", "health_router", "mcp_router"]
