"""
Best-effort metrics counters.

Counters are incremented only after the operation they describe succeeded,
and a Redis failure here is logged and dropped - never propagated.
"""
from __future__ import annotations

from datetime import datetime, timezone

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from paygate.core.config import settings
from paygate.core.logging import get_logger

logger = get_logger(__name__)


def today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def checkout_counter_key(provider: str, day: str | None = None) -> str:
    return f"checkout:{provider}:{day or today()}"


def subscription_counter_key(provider: str, day: str | None = None) -> str:
    return f"subscription:{provider}:{day or today()}"


def webhook_counter_key(provider: str, event_type: str, day: str | None = None) -> str:
    return f"webhook:{provider}:{event_type}:{day or today()}"


def error_counter_key(route: str, day: str | None = None) -> str:
    return f"error:{route or 'unknown'}:{day or today()}"


class MetricsCounter:
    """INCR + EXPIRE counters with daily keys"""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def increment(self, key: str, ttl_seconds: int | None = None) -> int | None:
        """Returns the new value, or None when the store was unavailable."""
        try:
            value = await self._redis.incr(key)
            if value == 1:
                # TTL נקבע רק ביצירה - מונה יומי לא נמתח לנצח
                await self._redis.expire(key, ttl_seconds or settings.METRICS_TTL_SECONDS)
            return value
        except (RedisError, OSError) as exc:
            logger.warning(
                "Failed to increment metrics counter",
                extra_data={"key": key, "error": str(exc)},
            )
            return None

    async def record_checkout(self, provider: str) -> None:
        await self.increment(checkout_counter_key(provider))

    async def record_subscription(self, provider: str) -> None:
        await self.increment(subscription_counter_key(provider))

    async def record_webhook(self, provider: str, event_type: str) -> None:
        await self.increment(webhook_counter_key(provider, event_type))

    async def record_error(self, route: str) -> None:
        await self.increment(error_counter_key(route), settings.ERROR_METRICS_TTL_SECONDS)

    async def get(self, key: str) -> int:
        raw = await self._redis.get(key)
        return int(raw) if raw is not None else 0
