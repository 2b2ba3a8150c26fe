"""
Subscription Service - recurring billing through the processors
"""
from __future__ import annotations

from typing import Any

from paygate.core.exceptions import SubscriptionNotFoundError
from paygate.core.logging import get_logger
from paygate.domain.models import SubscriptionRecord, SubscriptionRequest
from paygate.domain.services.checkout_service import (
    ProviderFactory,
    default_cancel_url,
    default_success_url,
    require_fields,
)
from paygate.domain.services.providers.provider_factory import get_payment_provider
from paygate.kv.counters import MetricsCounter
from paygate.kv.session_store import SessionStore

logger = get_logger(__name__)


class SubscriptionService:
    """Create and cancel subscriptions; the local record only remembers the owning processor"""

    def __init__(
        self,
        session_store: SessionStore,
        metrics: MetricsCounter,
        provider_factory: ProviderFactory = get_payment_provider,
    ):
        self.session_store = session_store
        self.metrics = metrics
        self.provider_factory = provider_factory

    async def create_subscription(
        self,
        provider: str | None,
        user_id: str | None,
        email: str | None,
        plan_id: str | None = None,
        price_id: str | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> dict[str, str]:
        plan = plan_id or price_id
        require_fields({
            "provider": provider,
            "userId": user_id,
            "email": email,
            "planId": plan,
        })

        adapter = self.provider_factory(provider)
        result = await adapter.create_subscription(
            SubscriptionRequest(
                user_id=user_id,
                email=email,
                plan_id=plan,
                success_url=success_url or default_success_url(),
                cancel_url=cancel_url or default_cancel_url(),
            )
        )

        await self.session_store.save_subscription(
            SubscriptionRecord(
                subscription_id=result.subscription_id,
                user_id=user_id,
                email=email,
                provider=adapter.provider_name,
                plan_id=plan,
            )
        )
        await self.metrics.record_subscription(adapter.provider_name)

        logger.info(
            "Subscription created",
            extra_data={
                "provider": adapter.provider_name,
                "subscription_id": result.subscription_id,
                "user_id": user_id,
                "plan_id": plan,
            },
        )
        return result.to_response()

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        """
        Cancel at the owning processor.

        A subscription unknown locally is a 404 even if the processor still
        knows it; there is no other way to tell which processor owns it.
        """
        record = await self.session_store.get_subscription(subscription_id)
        if record is None:
            raise SubscriptionNotFoundError(subscription_id)

        adapter = self.provider_factory(record.provider, status_code=500)
        await adapter.cancel_subscription(subscription_id)

        logger.info(
            "Subscription cancelled",
            extra_data={"provider": record.provider, "subscription_id": subscription_id},
        )
        return {"status": "cancelled", "subscriptionId": subscription_id}
