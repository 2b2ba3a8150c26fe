"""
Domain models - values passed between routes, orchestrators, adapters and the KV store.

Nothing here is persisted in full except CheckoutSession / SubscriptionRecord,
which are stored as JSON in Redis with a TTL.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ── בקשות לספק ──


@dataclass(frozen=True)
class CheckoutRequest:
    """Validated checkout parameters handed to a provider adapter"""

    user_id: str
    email: str
    amount: int  # minor currency units (cents)
    currency: str
    product_name: str
    success_url: str
    cancel_url: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubscriptionRequest:
    """Validated subscription parameters handed to a provider adapter"""

    user_id: str
    email: str
    plan_id: str
    success_url: str
    cancel_url: str


# ── תוצאות מהספק ──


@dataclass(frozen=True)
class CheckoutResult:
    session_id: str
    checkout_url: str
    provider: str

    def to_response(self) -> dict[str, str]:
        return {
            "sessionId": self.session_id,
            "checkoutUrl": self.checkout_url,
            "provider": self.provider,
        }


@dataclass(frozen=True)
class SubscriptionResult:
    subscription_id: str
    checkout_url: str
    provider: str

    def to_response(self) -> dict[str, str]:
        return {
            "subscriptionId": self.subscription_id,
            "checkoutUrl": self.checkout_url,
            "provider": self.provider,
        }


# ── webhooks ──


class WebhookRequest:
    """
    Raw inbound webhook - body bytes plus headers.

    Header lookup is case-insensitive, so adapters can ask for
    ``paddle-signature`` regardless of how the processor capitalised it.
    """

    def __init__(self, body: bytes, headers: Mapping[str, str] | None = None):
        self.body = body
        self._headers = {k.lower(): v for k, v in (headers or {}).items()}

    def header(self, name: str) -> str | None:
        return self._headers.get(name.lower())

    @property
    def content_type(self) -> str:
        return self._headers.get("content-type", "")


@dataclass(frozen=True)
class WebhookEvent:
    """Verified webhook event. Exists only for the duration of one request."""

    provider: str
    event_id: str
    event_type: str
    data: Any
    raw_payload: dict[str, Any]
    received_at: str = field(default_factory=utc_now_iso)


# ── רשומות ב-KV ──


@dataclass
class CheckoutSession:
    """Checkout metadata stored under ``session:{session_id}``"""

    session_id: str
    user_id: str
    email: str
    amount: int
    currency: str
    product_name: str
    provider: str
    created_at: str = field(default_factory=utc_now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_response(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "email": self.email,
            "amount": self.amount,
            "currency": self.currency,
            "productName": self.product_name,
            "provider": self.provider,
            "createdAt": self.created_at,
            "metadata": self.metadata,
        }


@dataclass
class SubscriptionRecord:
    """Subscription metadata stored under ``session:{subscription_id}``"""

    subscription_id: str
    user_id: str
    email: str
    provider: str
    plan_id: str
    type: str = "subscription"
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
