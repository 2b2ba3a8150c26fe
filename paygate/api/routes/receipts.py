"""
Receipt API Routes
"""
from fastapi import APIRouter, Depends

from paygate.api.dependencies.services import get_checkout_service
from paygate.api.responses import success_response
from paygate.domain.services.checkout_service import CheckoutService

router = APIRouter()


@router.get(
    "/{session_id}",
    summary="קבלה עבור checkout session",
    description="מחזיר את ה-session השמור יחד עם המצב העדכני אצל הספק.",
)
async def get_receipt(
    session_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    receipt = await service.get_receipt(session_id)
    return success_response(receipt, "Receipt retrieved successfully")
