"""
Service dependencies - בניית שירותי הדומיין לכל בקשה מעל ה-Redis המשותף.

שימוש:
    @router.post("/checkout")
    async def create_checkout(
        ...,
        service: CheckoutService = Depends(get_checkout_service),
    ):
        ...
"""
from paygate.core.redis_client import get_redis
from paygate.domain.services.backend_notifier import BackendNotifier
from paygate.domain.services.checkout_service import CheckoutService
from paygate.domain.services.subscription_service import SubscriptionService
from paygate.domain.services.webhook_service import WebhookService
from paygate.kv.counters import MetricsCounter
from paygate.kv.event_ledger import EventLedger
from paygate.kv.session_store import SessionStore


async def get_checkout_service() -> CheckoutService:
    redis = await get_redis()
    return CheckoutService(SessionStore(redis), MetricsCounter(redis))


async def get_subscription_service() -> SubscriptionService:
    redis = await get_redis()
    return SubscriptionService(SessionStore(redis), MetricsCounter(redis))


async def get_webhook_service() -> WebhookService:
    redis = await get_redis()
    return WebhookService(EventLedger(redis), MetricsCounter(redis), BackendNotifier())
