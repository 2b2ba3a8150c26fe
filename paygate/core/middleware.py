"""
FastAPI Middleware

Provides request/response middleware for:
- Correlation ID injection (+ request context for the JSON log formatter)
- Request logging
- Global error handling (every failure rendered as the error envelope)
- Security headers
- Rate limiting for webhook endpoints
"""
import math
import time
from collections import defaultdict
from typing import Any, Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from paygate.core.exceptions import AppException, ErrorCode
from paygate.core.logging import (
    clear_request_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    set_request_context,
)

logger = get_logger(__name__)


def error_envelope(message: str, details: dict[str, Any] | None = None, code: ErrorCode | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": message}
    if code is not None:
        body["code"] = code.value
    if details:
        body["details"] = details
    return body


def _route_name(request: Request) -> str:
    """Route template (/api/receipt/{session_id}) so error counters don't explode per id"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


async def _record_error_metric(request: Request) -> None:
    from paygate.core.redis_client import get_redis
    from paygate.kv.counters import MetricsCounter

    try:
        redis = await get_redis()
    except (RedisError, OSError) as exc:
        logger.warning(
            "Error metric skipped: Redis unavailable",
            extra_data={"error": str(exc)},
        )
        return
    await MetricsCounter(redis).record_error(_route_name(request))


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to requests"""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        # Get correlation ID from header or generate new one
        correlation_id = request.headers.get("X-Correlation-ID")
        correlation_id = set_correlation_id(correlation_id)
        set_request_context(request.method, request.url.path)

        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers["X-Correlation-ID"] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log requests and responses"""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        start_time = time.time()
        path = request.url.path

        logger.info(
            f"Request started: {request.method} {path}",
            extra_data={
                "method": request.method,
                "path": path,
                "client_host": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {path}",
                extra_data={
                    "method": request.method,
                    "path": path,
                    "duration_seconds": round(duration, 4),
                    "error": str(e),
                },
                exc_info=True
            )
            raise

        duration = time.time() - start_time
        log_level = "info" if response.status_code < 400 else "warning"
        getattr(logger, log_level)(
            f"Request completed: {request.method} {path}",
            extra_data={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_seconds": round(duration, 4),
            }
        )
        return response


async def app_exception_handler(
    request: Request,
    exc: AppException
) -> JSONResponse:
    """Handle application exceptions"""
    log_level = "error" if exc.status_code >= 500 else "warning"
    getattr(logger, log_level)(
        f"Application exception: {exc.error_code.value}",
        extra_data={
            "error_code": exc.error_code.value,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path,
        }
    )

    if exc.status_code >= 500:
        await _record_error_metric(request)

    headers = {"X-Correlation-ID": get_correlation_id()}
    retry_after = exc.details.get("retry_after_seconds")
    if retry_after is not None:
        headers["Retry-After"] = str(max(1, math.ceil(retry_after)))

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Request body / path schema errors → 400 envelope"""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        extra_data={"path": request.url.path, "errors": errors},
    )
    return JSONResponse(
        status_code=400,
        content=error_envelope("Invalid request", {"errors": errors}, ErrorCode.VALIDATION_ERROR),
        headers={"X-Correlation-ID": get_correlation_id()},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Routing errors (unknown endpoint, wrong method) in the error envelope"""
    if exc.status_code == 404:
        content = error_envelope("Endpoint not found", code=ErrorCode.NOT_FOUND)
    else:
        content = error_envelope(str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers={"X-Correlation-ID": get_correlation_id()},
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra_data={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": request.url.path,
        },
        exc_info=True
    )
    await _record_error_metric(request)

    return JSONResponse(
        status_code=500,
        content=error_envelope("Internal server error", code=ErrorCode.INTERNAL_ERROR),
        headers={"X-Correlation-ID": get_correlation_id()},
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware להוספת כותרות אבטחה לכל תשובה.

    - X-Content-Type-Options: nosniff - תמיד
    - Strict-Transport-Security + Content-Security-Policy - רק כשלא ב-DEBUG
    """

    def __init__(self, app: FastAPI, *, debug: bool = False) -> None:
        super().__init__(app)
        self._debug = debug

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"

        if not self._debug:
            response.headers["Content-Security-Policy"] = "upgrade-insecure-requests"
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class WebhookRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting לנקודות webhook - sliding window לפי IP.

    מגביל מספר בקשות לחלון זמן (ברירת מחדל: 100 בקשות / 60 שניות)
    על paths שמכילים /webhook. מחזיר 429 במעטפת השגיאה אם חורג.
    """

    def __init__(
        self,
        app: FastAPI,
        *,
        max_requests: int = 100,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        # IP → timestamps בתוך החלון
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._last_sweep = time.time()

    def _cleanup_window(self, ip: str, now: float) -> None:
        cutoff = now - self._window_seconds
        timestamps = [ts for ts in self._requests.get(ip, []) if ts >= cutoff]
        if timestamps:
            self._requests[ip] = timestamps
        else:
            self._requests.pop(ip, None)

    def _sweep_stale(self, now: float) -> None:
        """מוחק IPs שלא נראו במשך חלון שלם - פעם בחלון לכל היותר."""
        if now - self._last_sweep < self._window_seconds:
            return
        cutoff = now - self._window_seconds
        stale = [ip for ip, timestamps in self._requests.items() if not timestamps or timestamps[-1] < cutoff]
        for ip in stale:
            del self._requests[ip]
        self._last_sweep = now

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        path = request.url.path
        if "/webhook" not in path:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()

        self._sweep_stale(now)
        self._cleanup_window(client_ip, now)

        if len(self._requests.get(client_ip, [])) >= self._max_requests:
            logger.warning(
                "Rate limit exceeded for webhook",
                extra_data={
                    "client_ip": client_ip,
                    "path": path,
                    "limit": self._max_requests,
                    "window_seconds": self._window_seconds,
                },
            )
            return JSONResponse(
                status_code=429,
                content=error_envelope(
                    "Too many requests. Please try again later.",
                    code=ErrorCode.RATE_LIMITED,
                ),
                headers={
                    "Retry-After": str(self._window_seconds),
                    "X-Correlation-ID": get_correlation_id(),
                },
            )

        self._requests[client_ip].append(now)
        return await call_next(request)


def setup_middleware(app: FastAPI) -> None:
    """Setup all middleware for the application"""
    from paygate.core.config import settings

    # ה-middleware האחרון שנוסף הוא ה-outermost.
    # סדר עיבוד בקשה: SecurityHeaders → CorrelationId → RequestLogging → RateLimit → app
    app.add_middleware(
        WebhookRateLimitMiddleware,
        max_requests=settings.WEBHOOK_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.WEBHOOK_RATE_LIMIT_WINDOW_SECONDS,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, debug=settings.DEBUG)


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup exception handlers"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
