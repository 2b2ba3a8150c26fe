"""
Payment Webhook Handler - POST /api/webhook/{provider}.

גוף הבקשה נקרא כ-bytes גולמיים: החתימה מחושבת על הבייטים בדיוק
כפי שהתקבלו, ולכן אסור לפענח ולסרלז מחדש לפני האימות.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, Request

from paygate.api.dependencies.services import get_webhook_service
from paygate.api.responses import success_response
from paygate.core.logging import get_logger
from paygate.domain.models import WebhookRequest
from paygate.domain.services.webhook_service import WebhookService

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/{provider}",
    summary="Payment processor webhook",
    description=(
        "מקבל webhook מ-Paddle / PayPal, מאמת חתימה, מסנן כפילויות לפי event id "
        "ומעביר ל-backend הפנימי ברקע."
    ),
    tags=["Webhooks"],
)
async def payment_webhook(
    provider: str,
    request: Request,
    background_tasks: BackgroundTasks,
    service: WebhookService = Depends(get_webhook_service),
):
    body = await request.body()
    logger.debug(
        "Payment webhook received",
        extra_data={"provider": provider, "body_length": len(body)},
    )
    outcome = await service.handle_webhook(
        provider,
        WebhookRequest(body=body, headers=dict(request.headers)),
        background_tasks=background_tasks,
    )
    return success_response(outcome.to_response(), outcome.message)
