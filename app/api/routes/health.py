from __future__ import annotations

from fastapi import APIRouter

from app.core.config import SERVICE_NAME, SERVICE_VERSION

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check for load balancers and monitoring.

    Not rate limited and does not touch the record store.
    """

    return {"status": "ok", "service": SERVICE_NAME, "version": SERVICE_VERSION}
