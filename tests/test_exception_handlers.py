"""Tests for global exception handlers.

Validates that guard rejections and other errors are rendered consistently
with proper HTTP status codes, headers, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from request_guard.core.errors import (
    AppError,
    CounterStoreError,
    CsrfValidationError,
    RateLimitExceededError,
    ValidationAppError,
)
from request_guard.core.exception_handlers import setup_exception_handlers
from request_guard.core.rate_limit import RateLimitDecision


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify ValidationAppError returns HTTP 400 with details."""
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_rate_limit_policy",
                message="Invalid rate limit policy",
                details={"policy": "login"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_rate_limit_policy"
        assert data["error"]["details"] == {"policy": "login"}
        assert "request_id" in data["error"]

    def test_rate_limit_error_returns_429_with_headers(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        """Verify RateLimitExceededError carries retry metadata as headers and body."""
        decision = RateLimitDecision(
            allowed=False, limit=3, remaining=0, reset_at=5000.4, retry_after_seconds=12
        )

        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise RateLimitExceededError(decision, "export")

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "5001"
        error = response.json()["error"]
        assert error["code"] == "rate_limit_exceeded"
        assert error["details"] == {
            "policy": "export",
            "limit": 3,
            "remaining": 0,
            "reset_at": 5001,
            "retry_after": 12,
        }

    def test_csrf_error_returns_generic_403(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify CSRF failures expose nothing beyond a generic message."""
        @app_with_handlers.post("/test-csrf")
        async def test_endpoint():
            raise CsrfValidationError()

        response = client.post("/test-csrf")

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "invalid_request"
        assert error["message"] == "Invalid request, please retry."
        assert "details" not in error

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify a leaked CounterStoreError is not reported as a 500."""
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise CounterStoreError(code="counter_store_timeout", message="timeout")

        response = client.get("/test-store")

        assert response.status_code == 503

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses have consistent JSON structure."""
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert "error" in data
        assert "code" in data["error"]
        assert "message" in data["error"]
        assert "request_id" in data["error"]


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        from request_guard.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "POST"

        exc = RuntimeError("redis://:hunter2@cache:6379 refused connection")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "hunter2" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        from request_guard.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("boom")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
