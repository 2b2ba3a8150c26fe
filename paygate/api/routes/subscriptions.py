"""
Subscription API Routes
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from paygate.api.dependencies.services import get_subscription_service
from paygate.api.responses import success_response
from paygate.domain.services.subscription_service import SubscriptionService

router = APIRouter()


class SubscriptionBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    email: str | None = None
    plan_id: str | None = Field(default=None, alias="planId")
    price_id: str | None = Field(default=None, alias="priceId")
    success_url: str | None = Field(default=None, alias="successUrl")
    cancel_url: str | None = Field(default=None, alias="cancelUrl")


@router.post(
    "",
    summary="יצירת מנוי",
    description="יוצר מנוי אצל הספק (planId או priceId) ושומר רשומה ל-30 יום.",
)
async def create_subscription(
    body: SubscriptionBody,
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.create_subscription(
        provider=body.provider,
        user_id=body.user_id,
        email=body.email,
        plan_id=body.plan_id,
        price_id=body.price_id,
        success_url=body.success_url,
        cancel_url=body.cancel_url,
    )
    return success_response(subscription, "Subscription created successfully")


@router.delete(
    "/{subscription_id}",
    summary="ביטול מנוי",
    description="מבטל את המנוי אצל הספק שיצר אותו. מנוי שלא ידוע מקומית מחזיר 404.",
)
async def cancel_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.cancel_subscription(subscription_id)
    return success_response(result, "Subscription cancelled successfully")
