"""
בדיקות ל-Middleware - paygate/core/middleware.py

מכסה:
- CorrelationIdMiddleware: הפצת correlation ID בבקשות
- RequestLoggingMiddleware
- WebhookRateLimitMiddleware: הגבלת קצב webhook
- SecurityHeadersMiddleware
- Exception handlers: מעטפת שגיאה אחידה, Retry-After, מוני שגיאות
"""
import json
import time
from unittest.mock import MagicMock

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from paygate.core.exceptions import (
    AppException,
    CircuitBreakerOpenError,
    ErrorCode,
    ValidationException,
)
from paygate.core.middleware import (
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    WebhookRateLimitMiddleware,
    app_exception_handler,
    generic_exception_handler,
)
from paygate.kv.counters import error_counter_key


# ============================================================================
# Helpers
# ============================================================================


def _hello(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


def _webhook(request: Request) -> PlainTextResponse:
    return PlainTextResponse("webhook ok")


def _error(request: Request) -> PlainTextResponse:
    raise ValueError("שגיאת בדיקה")


def _build_app(*, middlewares: list[tuple] | None = None) -> Starlette:
    """אפליקציית Starlette מינימלית עם middleware"""
    app = Starlette(routes=[
        Route("/test", _hello),
        Route("/api/webhook/paddle", _webhook, methods=["GET", "POST"]),
        Route("/error", _error),
    ])
    for mw_class, kwargs in middlewares or []:
        app.add_middleware(mw_class, **kwargs)
    return app


def _mock_request(path: str, route_path: str | None = None) -> MagicMock:
    request = MagicMock(spec=Request)
    request.url.path = path
    request.scope = {"route": MagicMock(path=route_path)} if route_path else {}
    return request


# ============================================================================
# CorrelationIdMiddleware
# ============================================================================


class TestCorrelationIdMiddleware:

    @pytest.mark.unit
    def test_generates_correlation_id_when_missing(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.status_code == 200
            assert len(response.headers["x-correlation-id"]) == 8

    @pytest.mark.unit
    def test_preserves_existing_correlation_id(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test", headers={"X-Correlation-ID": "shop-req-42"})
            assert response.headers["x-correlation-id"] == "shop-req-42"

    @pytest.mark.unit
    def test_correlation_id_unique_per_request(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            first = client.get("/test").headers["x-correlation-id"]
            second = client.get("/test").headers["x-correlation-id"]
            assert first != second

    @pytest.mark.unit
    async def test_gateway_echoes_correlation_id(self, test_client) -> None:
        response = await test_client.get("/health", headers={"X-Correlation-ID": "abc12345"})
        assert response.headers["x-correlation-id"] == "abc12345"


class TestRequestLoggingMiddleware:

    @pytest.mark.unit
    def test_successful_request(self) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app) as client:
            assert client.get("/test").status_code == 200

    @pytest.mark.unit
    def test_exception_in_handler_reraised(self) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app, raise_server_exceptions=False) as client:
            assert client.get("/error").status_code == 500


# ============================================================================
# WebhookRateLimitMiddleware
# ============================================================================


class TestWebhookRateLimitMiddleware:

    @pytest.mark.unit
    def test_blocks_requests_over_limit(self) -> None:
        app = _build_app(middlewares=[
            (WebhookRateLimitMiddleware, {"max_requests": 3, "window_seconds": 60}),
        ])
        with TestClient(app) as client:
            for _ in range(3):
                assert client.post("/api/webhook/paddle").status_code == 200

            response = client.post("/api/webhook/paddle")
            assert response.status_code == 429
            assert response.headers["Retry-After"] == "60"
            assert response.json() == {
                "success": False,
                "error": "Too many requests. Please try again later.",
                "code": ErrorCode.RATE_LIMITED.value,
            }

    @pytest.mark.unit
    def test_non_webhook_paths_not_limited(self) -> None:
        app = _build_app(middlewares=[
            (WebhookRateLimitMiddleware, {"max_requests": 1, "window_seconds": 60}),
        ])
        with TestClient(app) as client:
            assert client.post("/api/webhook/paddle").status_code == 200
            assert client.post("/api/webhook/paddle").status_code == 429
            assert client.get("/test").status_code == 200
            assert client.get("/test").status_code == 200

    @pytest.mark.unit
    def test_cleanup_removes_old_entries(self) -> None:
        mw = WebhookRateLimitMiddleware(_build_app(), max_requests=100, window_seconds=60)
        now = time.time()
        mw._requests["1.2.3.4"] = [now - 120, now - 90, now - 30, now]

        mw._cleanup_window("1.2.3.4", now)

        assert len(mw._requests["1.2.3.4"]) == 2

    @pytest.mark.unit
    def test_cleanup_deletes_empty_ip(self) -> None:
        mw = WebhookRateLimitMiddleware(_build_app(), max_requests=100, window_seconds=60)
        now = time.time()
        mw._requests["1.2.3.4"] = [now - 120]

        mw._cleanup_window("1.2.3.4", now)

        assert "1.2.3.4" not in mw._requests

    @pytest.mark.unit
    def test_sweep_drops_ips_not_seen_for_a_window(self) -> None:
        mw = WebhookRateLimitMiddleware(_build_app(), max_requests=100, window_seconds=60)
        now = time.time()
        mw._last_sweep = now - 61
        mw._requests["9.9.9.9"] = [now - 300]
        mw._requests["1.2.3.4"] = [now - 300, now - 5]

        mw._sweep_stale(now)

        assert "9.9.9.9" not in mw._requests
        assert mw._requests["1.2.3.4"] == [now - 300, now - 5]
        assert mw._last_sweep == now

    @pytest.mark.unit
    def test_sweep_runs_at_most_once_per_window(self) -> None:
        mw = WebhookRateLimitMiddleware(_build_app(), max_requests=100, window_seconds=60)
        now = time.time()
        mw._last_sweep = now - 10
        mw._requests["9.9.9.9"] = [now - 300]

        mw._sweep_stale(now)

        assert "9.9.9.9" in mw._requests

    @pytest.mark.unit
    def test_429_response_includes_correlation_id(self) -> None:
        app = _build_app(middlewares=[
            (WebhookRateLimitMiddleware, {"max_requests": 1, "window_seconds": 60}),
            (CorrelationIdMiddleware, {}),
        ])
        with TestClient(app) as client:
            client.post("/api/webhook/paddle")
            response = client.post("/api/webhook/paddle")

            assert response.status_code == 429
            assert "x-correlation-id" in response.headers


# ============================================================================
# SecurityHeadersMiddleware
# ============================================================================


class TestSecurityHeaders:

    @pytest.mark.unit
    async def test_production_headers_on_gateway(self, test_client) -> None:
        response = await test_client.get("/health")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert "upgrade-insecure-requests" in response.headers["content-security-policy"]
        assert "includeSubDomains" in response.headers["strict-transport-security"]

    @pytest.mark.unit
    async def test_headers_on_error_responses(self, test_client) -> None:
        response = await test_client.get("/api/receipt/txn_missing")

        assert response.status_code == 404
        assert response.headers["x-content-type-options"] == "nosniff"

    @pytest.mark.unit
    def test_no_hsts_csp_in_debug(self) -> None:
        app = _build_app(middlewares=[(SecurityHeadersMiddleware, {"debug": True})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.headers["x-content-type-options"] == "nosniff"
            assert "content-security-policy" not in response.headers
            assert "strict-transport-security" not in response.headers


# ============================================================================
# Exception handlers
# ============================================================================


class TestAppExceptionHandler:

    @pytest.mark.unit
    async def test_client_error_envelope(self, fake_redis) -> None:
        exc = ValidationException("amount must be positive", field="amount")

        response = await app_exception_handler(_mock_request("/api/checkout"), exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 400
        assert json.loads(response.body) == {
            "success": False,
            "error": "amount must be positive",
            "code": ErrorCode.VALIDATION_ERROR.value,
            "details": {"field": "amount"},
        }
        assert "x-correlation-id" in response.headers
        # 4xx לא נספר כשגיאת שרת
        assert fake_redis.keys_with_prefix("error:") == []

    @pytest.mark.unit
    async def test_server_error_counted_by_route_template(self, fake_redis) -> None:
        exc = AppException("boom", status_code=500)
        request = _mock_request("/api/receipt/txn_123", route_path="/api/receipt/{session_id}")

        await app_exception_handler(request, exc)

        assert await fake_redis.get(error_counter_key("/api/receipt/{session_id}")) == "1"

    @pytest.mark.unit
    async def test_open_circuit_sets_retry_after(self) -> None:
        exc = CircuitBreakerOpenError("processor:paddle", retry_after_seconds=12.3)

        response = await app_exception_handler(_mock_request("/api/checkout"), exc)

        assert response.status_code == 503
        assert response.headers["retry-after"] == "13"

    @pytest.mark.unit
    async def test_retry_after_never_zero(self) -> None:
        exc = CircuitBreakerOpenError("internal_backend", retry_after_seconds=0.2)

        response = await app_exception_handler(_mock_request("/api/checkout"), exc)

        assert response.headers["retry-after"] == "1"


class TestGenericExceptionHandler:

    @pytest.mark.unit
    async def test_handles_unexpected_exception(self, fake_redis) -> None:
        response = await generic_exception_handler(
            _mock_request("/api/checkout", route_path="/api/checkout"),
            RuntimeError("שגיאה בלתי צפויה"),
        )

        assert response.status_code == 500
        assert "x-correlation-id" in response.headers
        assert await fake_redis.get(error_counter_key("/api/checkout")) == "1"

    @pytest.mark.unit
    async def test_does_not_leak_internal_details(self) -> None:
        response = await generic_exception_handler(
            _mock_request("/api/test"),
            RuntimeError("redis connection failed on host 10.0.0.1"),
        )

        body = response.body.decode()
        assert "10.0.0.1" not in body
        assert json.loads(body) == {
            "success": False,
            "error": "Internal server error",
            "code": ErrorCode.INTERNAL_ERROR.value,
        }


class TestRoutingErrors:

    @pytest.mark.unit
    async def test_unknown_endpoint(self, test_client) -> None:
        response = await test_client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "Endpoint not found",
            "code": ErrorCode.NOT_FOUND.value,
        }

    @pytest.mark.unit
    async def test_wrong_method(self, test_client) -> None:
        response = await test_client.get("/api/checkout")

        assert response.status_code == 405
        assert response.json()["success"] is False
