"""
API Routes
"""
from fastapi import APIRouter

from paygate.api.routes.checkout import router as checkout_router
from paygate.api.routes.receipts import router as receipts_router
from paygate.api.routes.subscriptions import router as subscriptions_router
from paygate.api.webhooks.payments import router as payments_webhook_router

router = APIRouter()

router.include_router(checkout_router, prefix="/checkout", tags=["Checkout"])
router.include_router(receipts_router, prefix="/receipt", tags=["Receipts"])
router.include_router(subscriptions_router, prefix="/subscription", tags=["Subscriptions"])
router.include_router(payments_webhook_router, prefix="/webhook", tags=["Webhooks"])
