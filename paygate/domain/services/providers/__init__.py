"""
Payment Provider Abstraction Layer

שכבת הפשטה מעל ספקי תשלומים.
מאפשרת הוספת ספק (Paddle / PayPal / Stripe) ללא שינוי בלוגיקה העסקית.
"""
from paygate.domain.services.providers.base_provider import BasePaymentProvider
from paygate.domain.services.providers.provider_factory import (
    SUPPORTED_PROVIDERS,
    get_payment_provider,
)

__all__ = [
    "BasePaymentProvider",
    "SUPPORTED_PROVIDERS",
    "get_payment_provider",
]
