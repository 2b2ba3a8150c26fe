"""
שירות בדיקת בריאות - liveness ו-readiness.

- liveness: האם התהליך חי (ללא בדיקת תלויות)
- readiness: Redis זמין + מצב ה-circuit breakers של הספקים
"""
from typing import Any

from redis.exceptions import RedisError

from paygate.core.circuit_breaker import CircuitBreaker
from paygate.core.logging import get_logger
from paygate.core.redis_client import get_redis

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"
# ללא חשיפת פרטי תשתית
_ERROR_REDIS = "error: redis_unavailable"


async def _check_redis() -> str:
    """בדיקת חיבור ל-Redis באמצעות PING."""
    try:
        client = await get_redis()
        await client.ping()
        return _CHECK_OK
    except (RedisError, OSError) as e:
        logger.warning("בדיקת בריאות Redis נכשלה", extra_data={"error": str(e)})
        return _ERROR_REDIS


def _circuit_states() -> dict[str, str]:
    # מידע בלבד - circuit פתוח לא הופך את השירות ל-degraded
    return {
        name: breaker.state.value
        for name, breaker in CircuitBreaker.all_instances().items()
    }


async def check_readiness() -> dict[str, Any]:
    """
    מחזיר status=healthy כש-Redis זמין, אחרת degraded.
    """
    redis_status = await _check_redis()
    overall_status = _STATUS_HEALTHY if redis_status == _CHECK_OK else _STATUS_DEGRADED

    if overall_status != _STATUS_HEALTHY:
        logger.warning(
            "בדיקת מוכנות - המערכת במצב degraded",
            extra_data={"redis": redis_status},
        )

    return {
        "status": overall_status,
        "redis": redis_status,
        "circuits": _circuit_states(),
    }
