"""
Shared async Redis connection.

Sessions, subscription records, processed-event markers and counters all
live in one Redis database. The client is created lazily on first use and
verified with PING, then reused by every request through its connection pool.
"""
import asyncio
from urllib.parse import urlparse

import redis.asyncio as aioredis

from paygate.core.config import settings
from paygate.core.logging import get_logger

logger = get_logger(__name__)

SOCKET_TIMEOUT_SECONDS = 5.0
HEALTH_CHECK_INTERVAL_SECONDS = 30

_client: aioredis.Redis | None = None
_connect_lock = asyncio.Lock()


def describe_redis_url(url: str) -> str:
    """host:port/db בלבד - בלי משתמש וסיסמה, לשימוש בלוגים."""
    try:
        parsed = urlparse(url)
        port = parsed.port or 6379
    except ValueError:
        return "<invalid redis url>"
    db = parsed.path.lstrip("/") or "0"
    return f"{parsed.hostname or 'localhost'}:{port}/{db}"


async def _connect() -> aioredis.Redis:
    client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
        health_check_interval=HEALTH_CHECK_INTERVAL_SECONDS,
    )
    await client.ping()
    logger.info("Connected to Redis", extra_data={"redis": describe_redis_url(settings.REDIS_URL)})
    return client


async def get_redis() -> aioredis.Redis:
    global _client
    if _client is None:
        async with _connect_lock:
            if _client is None:
                _client = await _connect()
    return _client


async def close_redis() -> None:
    """Called from the app shutdown hook."""
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
        logger.info("Redis connection closed")
