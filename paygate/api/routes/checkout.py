"""
Checkout API Routes
"""
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from paygate.api.dependencies.services import get_checkout_service
from paygate.api.responses import success_response
from paygate.domain.services.checkout_service import CheckoutService

router = APIRouter()


class CheckoutBody(BaseModel):
    """כל השדות אופציונליים בסכמה - חוסרים מדווחים יחד ע"י השירות"""

    model_config = ConfigDict(populate_by_name=True)

    provider: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    email: str | None = None
    amount: StrictInt | None = None
    currency: str | None = None
    product_name: str | None = Field(default=None, alias="productName")
    success_url: str | None = Field(default=None, alias="successUrl")
    cancel_url: str | None = Field(default=None, alias="cancelUrl")
    metadata: dict[str, Any] | None = None


@router.post(
    "",
    summary="יצירת checkout session",
    description="יוצר checkout אצל ספק התשלומים ושומר את ה-session ל-1 שעה.",
)
async def create_checkout(
    body: CheckoutBody,
    service: CheckoutService = Depends(get_checkout_service),
):
    """Create a hosted checkout session"""
    session = await service.create_checkout(
        provider=body.provider,
        user_id=body.user_id,
        email=body.email,
        amount=body.amount,
        product_name=body.product_name,
        currency=body.currency,
        success_url=body.success_url,
        cancel_url=body.cancel_url,
        metadata=body.metadata,
    )
    return success_response(session, "Checkout session created successfully")
