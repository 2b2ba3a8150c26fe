"""
Stripe Provider - registered, not implemented.

Every operation raises ProviderNotImplementedError so a request routed to
Stripe fails loudly instead of silently doing nothing.
"""
from __future__ import annotations

from typing import Any, NoReturn

from paygate.core.exceptions import ProviderNotImplementedError
from paygate.domain.models import (
    CheckoutRequest,
    CheckoutResult,
    SubscriptionRequest,
    SubscriptionResult,
    WebhookEvent,
    WebhookRequest,
)
from paygate.domain.services.providers.base_provider import BasePaymentProvider


class StripeProvider(BasePaymentProvider):

    @property
    def provider_name(self) -> str:
        return "stripe"

    def _not_implemented(self, operation: str) -> NoReturn:
        raise ProviderNotImplementedError(self.provider_name, operation)

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        self._not_implemented("checkout session creation")

    async def get_session(self, session_id: str) -> dict[str, Any]:
        self._not_implemented("session retrieval")

    async def verify_webhook(self, request: WebhookRequest) -> WebhookEvent:
        self._not_implemented("webhook verification")

    async def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResult:
        self._not_implemented("subscription creation")

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        self._not_implemented("subscription cancellation")
