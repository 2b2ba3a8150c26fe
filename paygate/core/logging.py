"""
Structured logging for the gateway.

Every line carries the correlation ID and, while a request is in flight, its
method and path. Both live in context variables set by the middleware, so a
background forward that outlives the response still logs under the same ID.
"""
import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
request_context_var: ContextVar[dict[str, Any] | None] = ContextVar("request_context", default=None)

_service_name = "payment-gateway"

# ספריות צד שלישי רועשות - רק אזהרות ומעלה
_QUIET_LOGGERS = ("httpx", "httpcore", "redis")


class JSONFormatter(logging.Formatter):
    """שורת JSON אחת לכל רשומה"""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "service": _service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        cid = correlation_id_var.get()
        if cid:
            entry["correlation_id"] = cid

        request = request_context_var.get()
        if request:
            entry["request"] = request

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry["extra"] = extra_data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """פורמט קריא לפיתוח מקומי"""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(name)s | [%(correlation_id)s] | %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = correlation_id_var.get() or "-"
        line = super().format(record)
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            line = f"{line} {json.dumps(extra_data, ensure_ascii=False, default=str)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods accept ``extra_data``.

    All level methods funnel into ``_log``, so overriding it once covers
    debug/info/warning/error/critical/exception alike.
    """

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1, extra_data: dict[str, Any] | None = None) -> None:
        if extra_data:
            extra = {**(extra or {}), "extra_data": extra_data}
        super()._log(level, msg, args, exc_info=exc_info, extra=extra,
                     stack_info=stack_info, stacklevel=stacklevel + 1)


logging.setLoggerClass(StructuredLogger)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    app_name: str = "payment-gateway"
) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines for production, text for local debugging
        app_name: value of the ``service`` field on JSON lines
    """
    global _service_name
    _service_name = app_name

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else TextFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, generating one if empty."""
    cid = correlation_id or generate_correlation_id()
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str:
    """Current correlation ID; a log line outside any request still gets one."""
    return correlation_id_var.get() or set_correlation_id()


def set_request_context(method: str, path: str) -> None:
    request_context_var.set({"method": method, "path": path})


def clear_request_context() -> None:
    request_context_var.set(None)


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def log_async_operation(operation_name: str):
    """
    Time an async call and log its outcome.

    Success is logged at DEBUG, failure at ERROR with the traceback; the
    exception always propagates.
    """
    def decorator(func):
        logger = get_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.error(
                    f"{operation_name} failed",
                    extra_data={
                        "operation": operation_name,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                        "error": str(exc),
                    },
                    exc_info=True,
                )
                raise
            logger.debug(
                f"{operation_name} completed",
                extra_data={
                    "operation": operation_name,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
            return result

        return wrapper
    return decorator
