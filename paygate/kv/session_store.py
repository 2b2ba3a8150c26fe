"""
Session store - checkout and subscription metadata keyed by processor id.

Records are written once and never updated; they disappear by TTL
(1 hour for checkout sessions, 30 days for subscriptions) or explicit delete.
"""
from __future__ import annotations

import json
from typing import Any

import redis.asyncio as aioredis

from paygate.core.config import settings
from paygate.core.logging import get_logger
from paygate.domain.models import CheckoutSession, SubscriptionRecord

logger = get_logger(__name__)

SESSION_KEY_PREFIX = "session:"


def session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


class SessionStore:
    """Redis-backed store for CheckoutSession / SubscriptionRecord JSON blobs"""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def store(self, session_id: str, data: dict[str, Any], ttl_seconds: int) -> None:
        await self._redis.setex(
            session_key(session_id),
            ttl_seconds,
            json.dumps(data, ensure_ascii=False, default=str),
        )

    async def get(self, session_id: str) -> dict[str, Any] | None:
        raw = await self._redis.get(session_key(session_id))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # רשומה פגומה מתנהגת כמו רשומה חסרה - המקור לניתוב הוא ה-store
            logger.warning(
                "Corrupt session record ignored",
                extra_data={"session_id": session_id},
            )
            return None

    async def delete(self, session_id: str) -> None:
        await self._redis.delete(session_key(session_id))

    # ── typed helpers ──

    async def save_checkout(self, session: CheckoutSession, ttl_seconds: int | None = None) -> None:
        await self.store(
            session.session_id,
            session.to_dict(),
            ttl_seconds or settings.SESSION_TTL_SECONDS,
        )

    async def save_subscription(
        self,
        record: SubscriptionRecord,
        ttl_seconds: int | None = None,
    ) -> None:
        await self.store(
            record.subscription_id,
            record.to_dict(),
            ttl_seconds or settings.SUBSCRIPTION_TTL_SECONDS,
        )

    async def get_checkout(self, session_id: str) -> CheckoutSession | None:
        data = await self.get(session_id)
        if data is None or data.get("type") == "subscription":
            return None
        return CheckoutSession(
            session_id=data.get("session_id", session_id),
            user_id=data["user_id"],
            email=data["email"],
            amount=data["amount"],
            currency=data["currency"],
            product_name=data["product_name"],
            provider=data["provider"],
            created_at=data.get("created_at", ""),
            metadata=data.get("metadata") or {},
        )

    async def get_subscription(self, subscription_id: str) -> SubscriptionRecord | None:
        data = await self.get(subscription_id)
        if data is None or data.get("type") != "subscription":
            return None
        return SubscriptionRecord(
            subscription_id=data.get("subscription_id", subscription_id),
            user_id=data["user_id"],
            email=data["email"],
            provider=data["provider"],
            plan_id=data["plan_id"],
            created_at=data.get("created_at", ""),
        )
