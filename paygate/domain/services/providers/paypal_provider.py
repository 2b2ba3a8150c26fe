"""
PayPal Provider - מימוש BasePaymentProvider מעל PayPal REST API.

- OAuth2 client-credentials, token נשמר על המופע עם מרווח ביטחון לפני תפוגה
- checkout: Orders v2 (intent=CAPTURE), קישור approve מוחזר כ-checkout_url
- webhook: אימות מרוחק דרך /v1/notifications/verify-webhook-signature
- מנויים: Billing Subscriptions v1
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from paygate.core.circuit_breaker import CircuitBreaker
from paygate.core.config import settings
from paygate.core.exceptions import SignatureVerificationError, ValidationException
from paygate.core.logging import get_logger, log_async_operation
from paygate.core.signatures import parse_webhook_payload
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

PAYPAL_API_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_API_URL = "https://api-m.sandbox.paypal.com"

# כותרות ש-PayPal שולח עם כל webhook → שמות השדות ב-verify-webhook-signature
_TRANSMISSION_HEADERS = {
    "paypal-transmission-id": "transmission_id",
    "paypal-transmission-time": "transmission_time",
    "paypal-cert-url": "cert_url",
    "paypal-auth-algo": "auth_algo",
    "paypal-transmission-sig": "transmission_sig",
}


@dataclass(frozen=True)
class AccessToken:
    """OAuth access token with the instant (epoch seconds) it stops being trusted"""

    token: str
    expires_at: float

    @classmethod
    def issue(cls, token: str, expires_in: int, margin_seconds: int, now: float | None = None) -> "AccessToken":
        issued = time.time() if now is None else now
        return cls(token=token, expires_at=issued + max(0, expires_in - margin_seconds))

    def is_valid(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return bool(self.token) and current < self.expires_at


def format_minor_units(amount: int) -> str:
    """1999 → '19.99'"""
    return f"{amount // 100}.{amount % 100:02d}"


def _approval_link(body: dict[str, Any]) -> str:
    for link in body.get("links") or []:
        if link.get("rel") == "approve":
            return link.get("href", "")
    return ""


class PayPalProvider(HttpPaymentProvider):
    """
    PayPal adapter.

    The access token cache lives on the instance and therefore starts cold on
    every request; within one request it is reused until
    TOKEN_EXPIRY_MARGIN_SECONDS before PayPal's declared expiry.
    """

    def __init__(self, circuit_breaker: CircuitBreaker | None = None) -> None:
        super().__init__(
            PAYPAL_SANDBOX_API_URL if settings.PAYPAL_SANDBOX else PAYPAL_API_URL,
            circuit_breaker=circuit_breaker,
        )
        self._client_id = settings.PAYPAL_CLIENT_ID
        self._client_secret = settings.PAYPAL_CLIENT_SECRET
        self._webhook_id = settings.PAYPAL_WEBHOOK_ID
        self._access_token: AccessToken | None = None

    @property
    def provider_name(self) -> str:
        return "paypal"

    # ── OAuth ──

    async def _get_access_token(self) -> str:
        if self._access_token is not None and self._access_token.is_valid():
            return self._access_token.token
        self._access_token = await self._fetch_access_token()
        return self._access_token.token

    @log_async_operation("paypal_access_token")
    async def _fetch_access_token(self) -> AccessToken:
        body = await self._request(
            "POST", "/v1/oauth2/token", "get_access_token",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )
        return AccessToken.issue(
            token=body.get("access_token", ""),
            expires_in=int(body.get("expires_in", 0)),
            margin_seconds=settings.TOKEN_EXPIRY_MARGIN_SECONDS,
        )

    async def _auth_headers(self) -> dict[str, str]:
        token = await self._get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # ── checkout ──

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        experience_context = {
            "payment_method_preference": "IMMEDIATE_PAYMENT_REQUIRED",
            "brand_name": settings.PAYPAL_BRAND_NAME,
            "locale": "en-US",
            "landing_page": "LOGIN",
            "user_action": "PAY_NOW",
            "return_url": request.success_url,
            "cancel_url": request.cancel_url,
        }
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {
                        "currency_code": request.currency,
                        "value": format_minor_units(request.amount),
                    },
                    "description": request.product_name,
                    "custom_id": request.user_id,
                }
            ],
            "payment_source": {"paypal": {"experience_context": experience_context}},
        }
        body = await self._request(
            "POST", "/v2/checkout/orders", "create_checkout_session",
            headers=await self._auth_headers(), json=payload,
        )

        result = CheckoutResult(
            session_id=self._require_id(body, "create_checkout_session"),
            checkout_url=_approval_link(body),
            provider=self.provider_name,
        )
        logger.info(
            "PayPal order created",
            extra_data={"order_id": result.session_id, "user_id": request.user_id},
        )
        return result

    async def get_session(self, session_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"/v2/checkout/orders/{session_id}", "get_session",
            headers=await self._auth_headers(),
        )

    # ── webhooks ──

    async def verify_webhook(self, request: WebhookRequest) -> WebhookEvent:
        transmission = {
            field: request.header(header)
            for header, field in _TRANSMISSION_HEADERS.items()
        }
        if not transmission["transmission_id"] or not transmission["transmission_sig"]:
            raise SignatureVerificationError(self.provider_name, "missing PayPal transmission headers")

        if not self._webhook_id:
            logger.error("PAYPAL_WEBHOOK_ID לא מוגדר - דוחה webhook")
            raise SignatureVerificationError(self.provider_name, "webhook id not configured")

        try:
            payload = parse_webhook_payload(request.body, request.content_type)
        except ValueError as exc:
            raise ValidationException(str(exc)) from exc

        verification = await self._request(
            "POST", "/v1/notifications/verify-webhook-signature", "verify_webhook",
            headers=await self._auth_headers(),
            json={**transmission, "webhook_id": self._webhook_id, "webhook_event": payload},
        )
        status = verification.get("verification_status")
        if status != "SUCCESS":
            logger.warning(
                "PayPal webhook: אימות נכשל",
                extra_data={"verification_status": status},
            )
            raise SignatureVerificationError(self.provider_name, f"verification status {status}")

        event_id = payload.get("id")
        if not event_id:
            raise ValidationException("Webhook payload has no id", field="id")

        event = WebhookEvent(
            provider=self.provider_name,
            event_id=str(event_id),
            event_type=payload.get("event_type", "unknown"),
            data=payload.get("resource"),
            raw_payload=payload,
        )
        logger.info(
            "PayPal webhook verified",
            extra_data={"event_id": event.event_id, "event_type": event.event_type},
        )
        return event

    # ── מנויים ──

    async def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResult:
        payload = {
            "plan_id": request.plan_id,
            "subscriber": {"email_address": request.email},
            "custom_id": request.user_id,
            "application_context": {
                "brand_name": settings.PAYPAL_BRAND_NAME,
                "locale": "en-US",
                "user_action": "SUBSCRIBE_NOW",
                "payment_method": {
                    "payer_selected": "PAYPAL",
                    "payee_preferred": "IMMEDIATE_PAYMENT_REQUIRED",
                },
                "return_url": request.success_url,
                "cancel_url": request.cancel_url,
            },
        }
        body = await self._request(
            "POST", "/v1/billing/subscriptions", "create_subscription",
            headers=await self._auth_headers(), json=payload,
        )

        result = SubscriptionResult(
            subscription_id=self._require_id(body, "create_subscription"),
            checkout_url=_approval_link(body),
            provider=self.provider_name,
        )
        logger.info(
            "PayPal subscription created",
            extra_data={"subscription_id": result.subscription_id, "user_id": request.user_id},
        )
        return result

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        # PayPal מחזיר 204 ללא גוף
        await self._request(
            "POST", f"/v1/billing/subscriptions/{subscription_id}/cancel", "cancel_subscription",
            headers=await self._auth_headers(),
            json={"reason": "Customer requested cancellation"},
        )
        logger.info(
            "PayPal subscription cancelled",
            extra_data={"subscription_id": subscription_id},
        )
        return {"status": "cancelled", "subscriptionId": subscription_id}
