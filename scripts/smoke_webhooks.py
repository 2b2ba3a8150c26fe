"""
Smoke tests against a running gateway instance.

Runs lightweight HTTP checks:
- GET /health
- GET /health/ready
- POST /api/webhook/paddle twice with the same signed event - the first
  delivery must be processed, the second reported as a duplicate

The Paddle check needs PADDLE_WEBHOOK_SECRET (same value the server uses)
and is skipped without it. Forwarding to the internal backend happens in the
background, so an unavailable backend does not fail the smoke run.
"""

from __future__ import annotations

import json
import os
import sys
import time
import uuid
from pathlib import Path

import httpx

# לאפשר הרצה מכל תיקיה (למשל `python scripts/smoke_webhooks.py` ב-Render Shell)
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from paygate.core.config import settings  # noqa: E402
from paygate.core.logging import get_logger, setup_logging  # noqa: E402
from paygate.core.signatures import compute_hmac_signature  # noqa: E402


logger = get_logger(__name__)


def _base_url() -> str:
    port = os.environ.get("PORT", "8000")
    return os.environ.get("BASE_URL", f"http://127.0.0.1:{port}").rstrip("/")


def _timeout_seconds() -> float:
    return float(os.environ.get("SMOKE_TIMEOUT_SECONDS", "10"))


def _paddle_event() -> bytes:
    # event_id ייחודי לכל ריצה - אחרת גם המשלוח הראשון ייחשב כפילות
    return json.dumps({
        "event_id": f"evt_smoke_{uuid.uuid4().hex[:12]}",
        "event_type": "transaction.completed",
        "data": {"id": "txn_smoke", "status": "completed"},
    }).encode("utf-8")


def _paddle_headers(body: bytes, secret: str) -> dict[str, str]:
    ts = int(time.time())
    signature = compute_hmac_signature(f"{ts}:".encode() + body, secret)
    return {"Content-Type": "application/json", "Paddle-Signature": f"ts={ts};h1={signature}"}


def _check_status(resp: httpx.Response, expected_family: int = 2) -> None:
    family = resp.status_code // 100
    if family != expected_family:
        raise RuntimeError(
            f"Unexpected status {resp.status_code} for {resp.request.method} {resp.request.url}. "
            f"Body: {(resp.text or '')[:500]}"
        )


def _check_message(resp: httpx.Response, expected: str) -> None:
    message = resp.json().get("message")
    if message != expected:
        raise RuntimeError(f"Expected message '{expected}', got '{message}'")


def main() -> None:
    setup_logging(level="INFO", json_format=False, app_name="payment-gateway-smoke")

    base_url = _base_url()
    timeout = _timeout_seconds()

    logger.info("Starting smoke tests", extra_data={"base_url": base_url, "timeout_seconds": timeout})

    with httpx.Client(timeout=timeout) as client:
        # Liveness
        health_url = f"{base_url}/health"
        logger.info("Checking health endpoint", extra_data={"url": health_url})
        _check_status(client.get(health_url), expected_family=2)

        # Readiness (Redis)
        ready_url = f"{base_url}/health/ready"
        logger.info("Checking readiness endpoint", extra_data={"url": ready_url})
        _check_status(client.get(ready_url), expected_family=2)

        secret = os.environ.get("PADDLE_WEBHOOK_SECRET") or settings.PADDLE_WEBHOOK_SECRET
        if not secret:
            logger.warning("PADDLE_WEBHOOK_SECRET לא מוגדר - מדלג על בדיקת webhook")
        else:
            webhook_url = f"{base_url}/api/webhook/paddle"
            body = _paddle_event()

            logger.info("Posting signed paddle webhook", extra_data={"url": webhook_url})
            resp = client.post(webhook_url, content=body, headers=_paddle_headers(body, secret))
            _check_status(resp, expected_family=2)
            _check_message(resp, "Webhook processed successfully")

            logger.info("Re-posting same paddle event", extra_data={"url": webhook_url})
            resp = client.post(webhook_url, content=body, headers=_paddle_headers(body, secret))
            _check_status(resp, expected_family=2)
            _check_message(resp, "Event already processed")

            # חתימה שגויה חייבת להידחות
            resp = client.post(webhook_url, content=body, headers=_paddle_headers(body, secret + "x"))
            _check_status(resp, expected_family=4)

    logger.info("Smoke tests completed successfully")


if __name__ == "__main__":
    main()
