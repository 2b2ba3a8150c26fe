"""
Backend Notifier - העברת אירועי תשלום מאומתים ל-backend הפנימי.

Best-effort: כשלון (non-2xx, רשת, timeout, circuit פתוח) נרשם בלוג
כ-BackendForwardError ואינו מגיע לספק ששלח את ה-webhook.
"""
from __future__ import annotations

from typing import Any

import httpx

from paygate.core.circuit_breaker import CircuitBreaker, get_backend_circuit_breaker
from paygate.core.config import settings
from paygate.core.exceptions import AppException, BackendForwardError
from paygate.core.logging import get_logger
from paygate.domain.models import WebhookEvent, utc_now_iso

logger = get_logger(__name__)

NOTIFY_PATH = "/internal/payment/notify"
INTERNAL_SECRET_HEADER = "X-Internal-Secret"


def build_notification(event: WebhookEvent) -> dict[str, Any]:
    return {
        "provider": event.provider,
        "event": event.event_type,
        "eventId": event.event_id,
        "data": event.data,
        "rawPayload": event.raw_payload,
        "timestamp": utc_now_iso(),
    }


class BackendNotifier:
    """Forwards verified webhook events to ``INTERNAL_BACKEND_URL``"""

    def __init__(
        self,
        backend_url: str | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._url = f"{(backend_url or settings.INTERNAL_BACKEND_URL).rstrip('/')}{NOTIFY_PATH}"
        self._circuit_breaker = circuit_breaker or get_backend_circuit_breaker()

    async def _post(self, notification: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=settings.BACKEND_NOTIFY_TIMEOUT_SECONDS) as client:
            response = await client.post(
                self._url,
                json=notification,
                headers={
                    "Content-Type": "application/json",
                    INTERNAL_SECRET_HEADER: settings.INTERNAL_SECRET,
                },
            )
        if not 200 <= response.status_code < 300:
            raise BackendForwardError(
                f"Backend responded with status {response.status_code}",
                details={
                    "status_code": response.status_code,
                    "response_text": response.text[:500],
                },
            )
        return response

    async def forward(self, event: WebhookEvent) -> bool:
        """
        Send one event to the backend.

        Returns True on a 2xx response; every failure is logged and
        reported as False.
        """
        try:
            await self._circuit_breaker.execute(self._post, build_notification(event))
        except BackendForwardError as exc:
            self._log_failure(event, exc)
            return False
        except AppException as exc:
            # CircuitBreakerOpenError
            self._log_failure(event, BackendForwardError(exc.message, details=exc.details))
            return False
        except httpx.HTTPError as exc:
            self._log_failure(
                event,
                BackendForwardError(
                    f"Backend request failed: {type(exc).__name__}",
                    details={"error": str(exc)},
                ),
            )
            return False

        logger.info(
            "Payment event forwarded to backend",
            extra_data={
                "provider": event.provider,
                "event_id": event.event_id,
                "event_type": event.event_type,
            },
        )
        return True

    @staticmethod
    def _log_failure(event: WebhookEvent, error: BackendForwardError) -> None:
        logger.error(
            "Failed to forward payment event to backend",
            extra_data={
                "provider": event.provider,
                "event_id": event.event_id,
                "event_type": event.event_type,
                "error": error.message,
                "error_code": error.error_code.value,
                **error.details,
            },
        )
