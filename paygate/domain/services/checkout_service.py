"""
Checkout Service - יצירת checkout session ושליפת קבלה.

כל הולידציה מתבצעת לפני פנייה לספק, כך שבקשה חסרה לא יוצרת
אף קריאת רשת ואף רשומה ב-KV.
"""
from __future__ import annotations

from typing import Any, Callable

from paygate.core.config import settings
from paygate.core.exceptions import SessionNotFoundError, ValidationException
from paygate.core.logging import get_logger
from paygate.domain.models import CheckoutRequest, CheckoutSession
from paygate.domain.services.providers.base_provider import BasePaymentProvider
from paygate.domain.services.providers.provider_factory import get_payment_provider
from paygate.kv.counters import MetricsCounter
from paygate.kv.session_store import SessionStore

logger = get_logger(__name__)

ProviderFactory = Callable[..., BasePaymentProvider]


def default_success_url() -> str:
    return f"{settings.INTERNAL_BACKEND_URL}/payment/success"


def default_cancel_url() -> str:
    return f"{settings.INTERNAL_BACKEND_URL}/payment/cancel"


def require_fields(fields: dict[str, Any]) -> None:
    """ValidationException listing every missing (None / empty) field, in order."""
    missing = [name for name, value in fields.items() if value is None or value == ""]
    if missing:
        raise ValidationException(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )


def validate_amount(amount: Any) -> int:
    # bool הוא תת-מחלקה של int - לא סכום
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationException("amount must be an integer in minor units", field="amount")
    if amount <= 0:
        raise ValidationException("amount must be positive", field="amount")
    return amount


class CheckoutService:
    """Checkout sessions: create through a processor, persist, read back as a receipt"""

    def __init__(
        self,
        session_store: SessionStore,
        metrics: MetricsCounter,
        provider_factory: ProviderFactory = get_payment_provider,
    ):
        self.session_store = session_store
        self.metrics = metrics
        self.provider_factory = provider_factory

    async def create_checkout(
        self,
        provider: str | None,
        user_id: str | None,
        email: str | None,
        amount: Any,
        product_name: str | None,
        currency: str | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, str]:
        """
        Create a hosted checkout with the requested processor.

        Returns ``{sessionId, checkoutUrl, provider}``. The session is stored
        under ``session:{sessionId}`` for SESSION_TTL_SECONDS.
        """
        require_fields({
            "provider": provider,
            "userId": user_id,
            "email": email,
            "amount": amount,
            "productName": product_name,
        })
        amount = validate_amount(amount)
        currency = (currency or settings.DEFAULT_CURRENCY).strip().upper()

        adapter = self.provider_factory(provider)
        request = CheckoutRequest(
            user_id=user_id,
            email=email,
            amount=amount,
            currency=currency,
            product_name=product_name,
            success_url=success_url or default_success_url(),
            cancel_url=cancel_url or default_cancel_url(),
            metadata=dict(metadata or {}),
        )
        result = await adapter.create_checkout_session(request)

        session = CheckoutSession(
            session_id=result.session_id,
            user_id=request.user_id,
            email=request.email,
            amount=request.amount,
            currency=request.currency,
            product_name=request.product_name,
            provider=adapter.provider_name,
            metadata=request.metadata,
        )
        await self.session_store.save_checkout(session)
        await self.metrics.record_checkout(adapter.provider_name)

        logger.info(
            "Checkout session created",
            extra_data={
                "provider": adapter.provider_name,
                "session_id": result.session_id,
                "user_id": user_id,
                "amount": amount,
                "currency": currency,
            },
        )
        return result.to_response()

    async def get_receipt(self, session_id: str) -> dict[str, Any]:
        """Local session record plus the processor's current view of it"""
        session = await self.session_store.get_checkout(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        # שם הספק נקרא מהרשומה - שם לא מוכר כאן הוא תקלה פנימית
        adapter = self.provider_factory(session.provider, status_code=500)
        provider_details = await adapter.get_session(session_id)

        return {
            "session": session.to_response(),
            "providerDetails": provider_details,
        }
