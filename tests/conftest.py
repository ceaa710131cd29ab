"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any app import so settings resolve to
the in-process store and the default 5-per-60s limit.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_STORE_BACKEND", "memory")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "5")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone
from typing import Sequence
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.adapters.store.base import AbstractRecordStore, Filter, Record, StoreError
from app.adapters.store.in_memory import InMemoryRecordStore
from app.core.app_factory import create_app
from app.services.contact_service import ContactService
from app.services.event_store import EventStore

T0 = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


class FailingRecordStore(AbstractRecordStore):
    """Store that is unreachable for every operation."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def insert_one(self, table: str, record: Record) -> Record:
        self.calls.append(f"insert:{table}")
        raise StoreError("connection refused")

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        self.calls.append(f"count:{table}")
        raise StoreError("connection refused")

    def select(self, table: str, filters: Sequence[Filter] = (), **kwargs) -> list[Record]:
        self.calls.append(f"select:{table}")
        raise StoreError("connection refused")


@pytest.fixture
def clock() -> Mock:
    """Controllable time source; set ``clock.return_value`` to move time."""
    return Mock(return_value=T0)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def limiter(store: InMemoryRecordStore, clock: Mock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(store, limit=5, window_seconds=60, clock=clock)


@pytest.fixture
def event_store(store: InMemoryRecordStore, clock: Mock) -> EventStore:
    return EventStore(store, clock=clock)


@pytest.fixture
def service(limiter: SlidingWindowRateLimiter, event_store: EventStore, clock: Mock) -> ContactService:
    return ContactService(limiter, event_store, clock=clock)


@pytest.fixture
def client(service: ContactService) -> TestClient:
    """Test client for an app wired to the in-memory store and fake clock."""
    return TestClient(create_app(contact_service=service))


@pytest.fixture
def failing_store() -> FailingRecordStore:
    return FailingRecordStore()
