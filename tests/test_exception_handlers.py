"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, rate-limit headers and no
information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from app.core.errors import (
    AppError,
    RateLimitedAppError,
    StoreUnavailableAppError,
    ValidationAppError,
)
from app.core.exception_handlers import setup_exception_handlers, status_code_for


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify ValidationAppError returns HTTP 400."""
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_input",
                message="Missing required fields: title",
                details={"missing_fields": ["title"]},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_input"
        assert data["error"]["details"]["missing_fields"] == ["title"]
        assert "request_id" in data["error"]
        # No accounting in details, so no rate-limit headers
        assert "X-RateLimit-Limit" not in response.headers

    def test_rate_limited_returns_429_with_headers(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify RateLimitedAppError returns 429 with Retry-After."""
        @app_with_handlers.get("/test-rate")
        async def test_endpoint():
            raise RateLimitedAppError(
                code="rate_limited",
                message="Rate limit exceeded. Maximum 5 requests per minute.",
                details={"limit": 5, "remaining": 0, "reset_at": 1700000060, "retry_after": 60},
            )

        response = client.get("/test-rate")

        assert response.status_code == 429
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000060"
        assert response.headers["Retry-After"] == "60"

    def test_store_unavailable_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify StoreUnavailableAppError returns HTTP 500 with its generic message."""
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Failed to log contact event",
                details={"limit": 5, "remaining": 3, "reset_at": 1700000060},
            )

        response = client.get("/test-store")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to log contact event"
        assert response.headers["X-RateLimit-Remaining"] == "3"
        assert "Retry-After" not in response.headers

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses have consistent JSON structure."""
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        response = client.get("/test-format")
        data = response.json()

        assert "error" in data
        assert "code" in data["error"]
        assert "message" in data["error"]
        assert "request_id" in data["error"]
        assert "details" not in data["error"]


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ValidationAppError(code="x", message="x"), 400),
        (RateLimitedAppError(code="x", message="x"), 429),
        (StoreUnavailableAppError(code="x", message="x"), 500),
        (AppError(code="x", message="x"), 400),
    ],
)
def test_status_code_for(exc: AppError, expected: int):
    assert status_code_for(exc) == expected


class TestRequestValidationHandler:
    def test_malformed_body_returns_400_invalid_input(self, client: TestClient, app_with_handlers: FastAPI):
        class Body(BaseModel):
            count: int

        @app_with_handlers.post("/test-body")
        async def test_endpoint(body: Body):
            return body

        response = client.post("/test-body", json={"count": "many"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_input"
        assert "many" not in response.text


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-boom")
        async def test_endpoint():
            raise RuntimeError("database password is hunter2")

        response = client.get("/test-boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
        data = json.loads(response_body.decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "database connection" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
        response_text = response_body.decode()
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        """Verify calling setup_exception_handlers multiple times is safe."""
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
