"""
ממשק בסיסי לספק תשלומים - Dependency Inversion.

כל ספק (Paddle, PayPal, Stripe) חייב לממש את הממשק הזה.
ה-orchestrators (checkout / subscription / webhook) תלויים רק בממשק ולא במימוש ספציפי.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from paygate.domain.models import (
    CheckoutRequest,
    CheckoutResult,
    SubscriptionRequest,
    SubscriptionResult,
    WebhookEvent,
    WebhookRequest,
)


class BasePaymentProvider(ABC):
    """
    ממשק אחיד לספק תשלומים.

    כל מימוש אחראי על:
    - קריאות HTTP ל-API של הספק (עם timeout ו-circuit breaker)
    - אימות webhook לפי הסכמה שהספק מחייב
    - המרת תשובות הספק לערכים אחידים (CheckoutResult, WebhookEvent...)

    מופע של ספק חי לכל היותר בקשה אחת - אין להסתמך על זיכרון בין בקשות.
    """

    # ── checkout ──

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutResult:
        """
        יצירת checkout session אצל הספק.

        Raises:
            ProcessorAPIError: הקריאה לספק נכשלה (כולל טקסט השגיאה הגולמי).
        """

    @abstractmethod
    async def get_session(self, session_id: str) -> dict[str, Any]:
        """
        פרטי session/transaction כפי שהספק מחזיר אותם.

        Raises:
            ProcessorAPIError: הקריאה לספק נכשלה.
        """

    # ── webhooks ──

    @abstractmethod
    async def verify_webhook(self, request: WebhookRequest) -> WebhookEvent:
        """
        אימות חתימת webhook והחזרת אירוע מנורמל.

        Raises:
            SignatureVerificationError: כותרות חסרות/פגומות או חתימה לא תואמת.
            ProcessorAPIError: אימות מרוחק מול הספק נכשל.
        """

    # ── מנויים ──

    @abstractmethod
    async def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResult:
        """
        יצירת מנוי אצל הספק.

        Raises:
            ProcessorAPIError: הקריאה לספק נכשלה.
        """

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        """
        ביטול מנוי.

        Raises:
            ProcessorAPIError: הקריאה לספק נכשלה.
        """

    # ── זיהוי ספק ──

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """שם הספק לניתוב ולוגים - לא גבול אבטחה."""
