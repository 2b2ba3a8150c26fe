"""
Domain Services
"""
from paygate.domain.services.backend_notifier import BackendNotifier
from paygate.domain.services.checkout_service import CheckoutService
from paygate.domain.services.subscription_service import SubscriptionService
from paygate.domain.services.webhook_service import WebhookService

__all__ = [
    "BackendNotifier",
    "CheckoutService",
    "SubscriptionService",
    "WebhookService",
]
