"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from wishlist_api.core.errors import (
    AppError,
    AuthenticationAppError,
    CacheSerializationError,
    NotFoundAppError,
    RateLimitExceededAppError,
    StoreUnavailableError,
    ValidationAppError,
)
from wishlist_api.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


def _route_raising(app: FastAPI, path: str, exc: Exception) -> None:
    @app.get(path)
    async def endpoint():
        raise exc


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (ValidationAppError(code="bad_input", message="bad"), 400),
            (AuthenticationAppError(code="invalid_api_key", message="nope"), 403),
            (NotFoundAppError(code="metrics_not_found", message="missing"), 404),
            (StoreUnavailableError(code="store_unavailable", message="down"), 503),
            (CacheSerializationError(code="cache_value_not_serializable", message="x"), 503),
        ],
    )
    def test_status_code_mapping(self, client, app_with_handlers, exc, status_code) -> None:
        _route_raising(app_with_handlers, "/boom", exc)

        response = client.get("/boom")

        assert response.status_code == status_code
        data = response.json()
        assert data["error"]["code"] == exc.code
        assert data["error"]["message"] == exc.message
        assert "request_id" in data["error"]

    def test_details_are_included_when_present(self, client, app_with_handlers) -> None:
        _route_raising(
            app_with_handlers,
            "/details",
            ValidationAppError(code="ttl_invalid", message="bad ttl", details={"hint": "use >= 1"}),
        )

        data = client.get("/details").json()

        assert data["error"]["details"] == {"hint": "use >= 1"}

    def test_details_are_omitted_when_absent(self, client, app_with_handlers) -> None:
        _route_raising(app_with_handlers, "/plain", ValidationAppError(code="x", message="y"))

        assert "details" not in client.get("/plain").json()["error"]

    def test_rate_limit_error_returns_429_with_headers(self, client, app_with_handlers) -> None:
        _route_raising(
            app_with_handlers,
            "/limited",
            RateLimitExceededAppError(
                code="rate_limit_exceeded",
                message="Too many requests. Please try again later.",
                details={"limit": 10, "remaining": 0, "reset": 1700000000, "retry_after": 42},
            ),
        )

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000000"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_500(self, client, app_with_handlers) -> None:
        _route_raising(app_with_handlers, "/crash", RuntimeError("redis password=hunter2"))

        response = client.get("/crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self) -> None:
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error")))

        body = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert "Traceback" not in json.dumps(body)
        assert "ValueError" not in json.dumps(body)


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI) -> None:
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
