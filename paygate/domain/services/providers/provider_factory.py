"""
Provider Factory - resolving a processor name to its adapter.

Registry is a fixed mapping; the only input taken from the request is the
name itself. A fresh adapter is built per call, so nothing (tokens included)
leaks from one request into the next.
"""
from __future__ import annotations

from paygate.core.exceptions import UnsupportedProviderError
from paygate.domain.services.providers.base_provider import BasePaymentProvider
from paygate.domain.services.providers.paddle_provider import PaddleProvider
from paygate.domain.services.providers.paypal_provider import PayPalProvider
from paygate.domain.services.providers.stripe_provider import StripeProvider

_PROVIDER_REGISTRY: dict[str, type[BasePaymentProvider]] = {
    "paddle": PaddleProvider,
    "paypal": PayPalProvider,
    "stripe": StripeProvider,
}

SUPPORTED_PROVIDERS: frozenset[str] = frozenset(_PROVIDER_REGISTRY)


def normalize_provider_name(name: str | None) -> str:
    return (name or "").strip().lower()


def get_payment_provider(name: str | None, *, status_code: int = 400) -> BasePaymentProvider:
    """
    ספק תשלומים לפי שם (case-insensitive).

    Args:
        name: שם הספק מהבקשה או מהרשומה השמורה.
        status_code: קוד HTTP לשגיאה - 400 כשהשם הגיע מהלקוח,
                     500 כשהשם נקרא מרשומה שמורה.

    Raises:
        UnsupportedProviderError: שם לא מוכר.
    """
    provider_cls = _PROVIDER_REGISTRY.get(normalize_provider_name(name))
    if provider_cls is None:
        raise UnsupportedProviderError(name or "", status_code=status_code)
    return provider_cls()
