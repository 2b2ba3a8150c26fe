"""
Webhook Service - קליטת webhook מספק תשלומים, פעם אחת בלבד לכל אירוע.

סדר הפעולות:
1. איתור ה-adapter לפי שם הספק
2. אימות חתימה (כשלון → 400, ללא תופעות לוואי)
3. בדיקת ledger - אירוע שכבר טופל מוחזר כהצלחה ללא העברה
4. כתיבת marker עם SET NX לפני ההעברה (at-most-once)
5. העברה ל-backend - ברקע אם יש BackgroundTasks, אחרת inline; התוצאה לא משפיעה על התשובה
6. מונה webhook יומי
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import BackgroundTasks

from paygate.core.exceptions import ProviderNotImplementedError
from paygate.core.logging import get_logger
from paygate.domain.models import WebhookEvent, WebhookRequest
from paygate.domain.services.backend_notifier import BackendNotifier
from paygate.domain.services.checkout_service import ProviderFactory
from paygate.domain.services.providers.provider_factory import get_payment_provider
from paygate.kv.counters import MetricsCounter
from paygate.kv.event_ledger import EventLedger

logger = get_logger(__name__)

MESSAGE_PROCESSED = "Webhook processed successfully"
MESSAGE_DUPLICATE = "Event already processed"


@dataclass(frozen=True)
class WebhookOutcome:
    event: WebhookEvent
    duplicate: bool = False

    @property
    def message(self) -> str:
        return MESSAGE_DUPLICATE if self.duplicate else MESSAGE_PROCESSED

    def to_response(self) -> dict[str, bool]:
        return {"received": True}


class WebhookService:
    """Verify, deduplicate and forward processor webhooks"""

    def __init__(
        self,
        ledger: EventLedger,
        metrics: MetricsCounter,
        notifier: BackendNotifier,
        provider_factory: ProviderFactory = get_payment_provider,
    ):
        self.ledger = ledger
        self.metrics = metrics
        self.notifier = notifier
        self.provider_factory = provider_factory

    async def handle_webhook(
        self,
        provider_name: str,
        request: WebhookRequest,
        background_tasks: BackgroundTasks | None = None,
    ) -> WebhookOutcome:
        adapter = self.provider_factory(provider_name)
        try:
            event = await adapter.verify_webhook(request)
        except ProviderNotImplementedError as exc:
            # ספק לא ממומש ב-webhook - הספק השולח צריך לקבל 4xx ולא לנסות שוב לנצח
            raise ProviderNotImplementedError(
                exc.provider, exc.operation, status_code=400
            ) from exc

        if await self.ledger.is_processed(event.provider, event.event_id):
            logger.info(
                "Duplicate webhook ignored",
                extra_data={"provider": event.provider, "event_id": event.event_id},
            )
            return WebhookOutcome(event=event, duplicate=True)

        if not await self.ledger.mark_processed(event.provider, event.event_id, event.event_type):
            # delivery מקבילה זכתה ב-SET NX
            logger.info(
                "Concurrent duplicate webhook ignored",
                extra_data={"provider": event.provider, "event_id": event.event_id},
            )
            return WebhookOutcome(event=event, duplicate=True)

        if background_tasks is not None:
            background_tasks.add_task(self.notifier.forward, event)
        else:
            await self.notifier.forward(event)

        await self.metrics.record_webhook(event.provider, event.event_type)

        logger.info(
            "Webhook processed",
            extra_data={
                "provider": event.provider,
                "event_id": event.event_id,
                "event_type": event.event_type,
            },
        )
        return WebhookOutcome(event=event)
