"""
Paddle Provider - מימוש BasePaymentProvider מעל Paddle Billing API.

- checkout: POST /transactions עם פריט במחיר inline
- webhook: כותרת Paddle-Signature (ts=...;h1=...), HMAC-SHA256 על "{ts}:{body}"
- מנויים: POST /subscriptions, ביטול דרך /subscriptions/{id}/cancel
"""
from __future__ import annotations

from typing import Any

from paygate.core.circuit_breaker import CircuitBreaker
from paygate.core.config import settings
from paygate.core.exceptions import SignatureVerificationError, ValidationException
from paygate.core.logging import get_logger
from paygate.core.signatures import (
    is_timestamp_valid,
    parse_signature_header,
    parse_webhook_payload,
    verify_hmac_signature,
)
from paygate.domain.models import (
    CheckoutRequest,
    CheckoutResult,
    SubscriptionRequest,
    SubscriptionResult,
    WebhookEvent,
    WebhookRequest,
)
from paygate.domain.services.providers.http_provider import HttpPaymentProvider

logger = get_logger(__name__)

PADDLE_API_URL = "https://api.paddle.com"
PADDLE_SANDBOX_API_URL = "https://sandbox-api.paddle.com"
PADDLE_SIGNATURE_HEADER = "paddle-signature"


class PaddleProvider(HttpPaymentProvider):
    """Paddle Billing adapter (bearer API key, local HMAC webhook verification)"""

    def __init__(self, circuit_breaker: CircuitBreaker | None = None) -> None:
        super().__init__(
            PADDLE_SANDBOX_API_URL if settings.PADDLE_SANDBOX else PADDLE_API_URL,
            circuit_breaker=circuit_breaker,
        )
        self._api_key = settings.PADDLE_API_KEY
        self._webhook_secret = settings.PADDLE_WEBHOOK_SECRET

    @property
    def provider_name(self) -> str:
        return "paddle"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    # ── checkout ──

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        payload = {
            "items": [
                {
                    "price": {
                        "description": request.product_name,
                        "unit_price": {
                            # Paddle מצפה לסכום ביחידות מינימליות כמחרוזת
                            "amount": str(request.amount),
                            "currency_code": request.currency,
                        },
                    },
                    "quantity": 1,
                }
            ],
            "customer": {"email": request.email},
            "custom_data": {"user_id": request.user_id, **request.metadata},
            "return_url": request.success_url,
            "checkout": {"url": request.cancel_url},
        }
        body = await self._request(
            "POST", "/transactions", "create_checkout_session",
            headers=self._headers(), json=payload,
        )
        transaction = self._unwrap(body)
        checkout = transaction.get("checkout") or {}

        result = CheckoutResult(
            session_id=self._require_id(transaction, "create_checkout_session"),
            checkout_url=checkout.get("url") or transaction.get("url") or "",
            provider=self.provider_name,
        )
        logger.info(
            "Paddle checkout session created",
            extra_data={"session_id": result.session_id, "user_id": request.user_id},
        )
        return result

    async def get_session(self, session_id: str) -> dict[str, Any]:
        body = await self._request(
            "GET", f"/transactions/{session_id}", "get_session",
            headers=self._headers(),
        )
        return self._unwrap(body)

    # ── webhooks ──

    async def verify_webhook(self, request: WebhookRequest) -> WebhookEvent:
        signature = request.header(PADDLE_SIGNATURE_HEADER)
        if not signature:
            raise SignatureVerificationError(self.provider_name, "missing Paddle-Signature header")

        parts = parse_signature_header(signature)
        timestamp = parts.get("ts")
        received = parts.get("h1")
        if not timestamp or not received:
            raise SignatureVerificationError(self.provider_name, "invalid Paddle-Signature format")

        if not self._webhook_secret:
            logger.error("PADDLE_WEBHOOK_SECRET לא מוגדר - דוחה webhook")
            raise SignatureVerificationError(self.provider_name, "webhook secret not configured")

        if not is_timestamp_valid(timestamp, settings.WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS):
            raise SignatureVerificationError(self.provider_name, "timestamp outside tolerance")

        if not verify_hmac_signature(f"{timestamp}:".encode() + request.body, received, self._webhook_secret):
            logger.warning("Paddle webhook: חתימה לא תקינה")
            raise SignatureVerificationError(self.provider_name, "signature mismatch")

        try:
            payload = parse_webhook_payload(request.body, request.content_type)
        except ValueError as exc:
            raise ValidationException(str(exc)) from exc

        event_id = payload.get("event_id")
        if not event_id:
            raise ValidationException("Webhook payload has no event_id", field="event_id")

        event = WebhookEvent(
            provider=self.provider_name,
            event_id=str(event_id),
            event_type=payload.get("event_type", "unknown"),
            data=payload.get("data"),
            raw_payload=payload,
        )
        logger.info(
            "Paddle webhook verified",
            extra_data={"event_id": event.event_id, "event_type": event.event_type},
        )
        return event

    # ── מנויים ──

    async def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResult:
        payload = {
            "customer": {"email": request.email},
            "items": [{"price_id": request.plan_id, "quantity": 1}],
            "custom_data": {"user_id": request.user_id},
            "return_url": request.success_url,
        }
        body = await self._request(
            "POST", "/subscriptions", "create_subscription",
            headers=self._headers(), json=payload,
        )
        subscription = self._unwrap(body)
        checkout = subscription.get("checkout") or {}

        result = SubscriptionResult(
            subscription_id=self._require_id(subscription, "create_subscription"),
            checkout_url=checkout.get("url") or "",
            provider=self.provider_name,
        )
        logger.info(
            "Paddle subscription created",
            extra_data={"subscription_id": result.subscription_id, "user_id": request.user_id},
        )
        return result

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        body = await self._request(
            "POST", f"/subscriptions/{subscription_id}/cancel", "cancel_subscription",
            headers=self._headers(), json={"effective_from": "next_billing_period"},
        )
        logger.info(
            "Paddle subscription cancelled",
            extra_data={"subscription_id": subscription_id},
        )
        return self._unwrap(body)
