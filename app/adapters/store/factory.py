"""Factory for the configured record store backend."""

from __future__ import annotations

import logging

from app.adapters.store.base import AbstractRecordStore
from app.adapters.store.in_memory import InMemoryRecordStore
from app.adapters.store.sql import SQLAlchemyRecordStore
from app.core.config import AppSettings, settings
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_record_store(app_settings: AppSettings | None = None) -> AbstractRecordStore:
    """Instantiate the record store selected by ``store_backend``.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    cfg = app_settings or settings.app
    backend = cfg.store_backend.lower()

    if backend == "memory":
        logger.info("store.created", extra={"backend": "memory"})
        return InMemoryRecordStore()

    if backend == "sql":
        store = SQLAlchemyRecordStore.from_url(cfg.database_url)
        logger.info(
            "store.created",
            extra={"backend": "sql", "dialect": cfg.database_url.split(":", 1)[0]},
        )
        return store

    raise ValidationAppError(
        code="unknown_store_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, sql",
    )
