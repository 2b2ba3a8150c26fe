"""
Idempotency ledger - which (provider, event_id) pairs were already handled.

The marker is written with ``SET NX EX``, so of two concurrent deliveries of
the same event exactly one wins the write. Markers expire after
EVENT_TTL_SECONDS (7 days); after that a replayed event is processed again.
"""
from __future__ import annotations

import json

import redis.asyncio as aioredis

from paygate.core.config import settings
from paygate.domain.models import utc_now_iso

EVENT_KEY_PREFIX = "evt:"


def event_key(provider: str, event_id: str) -> str:
    return f"{EVENT_KEY_PREFIX}{provider}:{event_id}"


class EventLedger:
    """Processed-event markers in Redis"""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def is_processed(self, provider: str, event_id: str) -> bool:
        return await self._redis.get(event_key(provider, event_id)) is not None

    async def mark_processed(
        self,
        provider: str,
        event_id: str,
        event_type: str,
        ttl_seconds: int | None = None,
    ) -> bool:
        """
        Write the marker if absent.

        Returns True when this call created the marker, False when another
        delivery of the same event already holds it.
        """
        marker = json.dumps({
            "processed_at": utc_now_iso(),
            "event_type": event_type,
        })
        created = await self._redis.set(
            event_key(provider, event_id),
            marker,
            nx=True,
            ex=ttl_seconds or settings.EVENT_TTL_SECONDS,
        )
        return bool(created)

    async def get_marker(self, provider: str, event_id: str) -> dict | None:
        raw = await self._redis.get(event_key(provider, event_id))
        return json.loads(raw) if raw is not None else None
