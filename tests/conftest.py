"""
Pytest Configuration and Fixtures

Provides fixtures for:
- In-memory Redis (session store, event ledger, counters)
- Processor / backend credentials
- Mock outbound HTTP (httpx.AsyncClient)
- ASGI test client
"""
import itertools
import json
import time
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient, Response

from paygate.core.config import settings
from paygate.core.signatures import compute_hmac_signature
from paygate.main import app

TEST_PADDLE_SECRET = "pdl_ntfset_test_secret"
TEST_INTERNAL_SECRET = "internal-test-secret"
TEST_BACKEND_URL = "https://backend.test"


# ============================================================================
# Circuit Breaker Reset
# ============================================================================

@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Reset circuit breakers between tests"""
    from paygate.core.circuit_breaker import CircuitBreaker
    CircuitBreaker.reset_all()
    yield
    CircuitBreaker.reset_all()


# ============================================================================
# Redis
# ============================================================================

class FakeRedis:
    """תחליף ל-Redis לבדיקות - in-memory dict עם ממשק תואם ומעקב TTL."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._ttls: dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        """SET עם תמיכה ב-NX (רק אם לא קיים) ו-EX (תפוגה בשניות)"""
        if nx and key in self._store:
            return None
        self._store[key] = value
        if ex is not None:
            self._ttls[key] = ex
        return True

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value
        self._ttls[key] = ttl

    async def incr(self, key: str) -> int:
        """INCR אטומי - מגדיל ב-1, מאתחל ל-1 אם לא קיים"""
        current = self._store.get(key)
        new_val = int(current) + 1 if current is not None else 1
        self._store[key] = str(new_val)
        return new_val

    async def expire(self, key: str, ttl: int) -> None:
        if key in self._store:
            self._ttls[key] = ttl

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._store.pop(key, None)
            self._ttls.pop(key, None)

    async def aclose(self) -> None:
        self._store.clear()
        self._ttls.clear()

    # עזרי בדיקה
    def ttl_of(self, key: str) -> int | None:
        return self._ttls.get(key)

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return [key for key in self._store if key.startswith(prefix)]


@pytest.fixture(autouse=True)
def fake_redis():
    """מחליף את get_redis ב-FakeRedis לכל הבדיקות."""
    _fake = FakeRedis()

    async def _get_fake_redis():
        return _fake

    with patch("paygate.core.redis_client.get_redis", _get_fake_redis), \
         patch("paygate.api.dependencies.services.get_redis", _get_fake_redis), \
         patch("paygate.domain.services.health_service.get_redis", _get_fake_redis):
        yield _fake


# ============================================================================
# Credentials
# ============================================================================

@pytest.fixture(autouse=True)
def processor_settings():
    """פרטי גישה לספקים ול-backend - ערכי בדיקה בלבד"""
    with patch.object(settings, "PADDLE_API_KEY", "pdl_test_api_key"), \
         patch.object(settings, "PADDLE_WEBHOOK_SECRET", TEST_PADDLE_SECRET), \
         patch.object(settings, "PADDLE_SANDBOX", False), \
         patch.object(settings, "PAYPAL_CLIENT_ID", "paypal-client-id"), \
         patch.object(settings, "PAYPAL_CLIENT_SECRET", "paypal-client-secret"), \
         patch.object(settings, "PAYPAL_WEBHOOK_ID", "WH-TEST-123"), \
         patch.object(settings, "PAYPAL_SANDBOX", True), \
         patch.object(settings, "INTERNAL_BACKEND_URL", TEST_BACKEND_URL), \
         patch.object(settings, "INTERNAL_SECRET", TEST_INTERNAL_SECRET):
        yield


# ============================================================================
# Outbound HTTP
# ============================================================================

def make_response(status_code: int = 200, json_data: Any = None, text: str | None = None) -> MagicMock:
    """httpx.Response מדומה עם status, json() ו-text"""
    response = MagicMock(spec=Response)
    response.status_code = status_code
    if json_data is None:
        response.json.side_effect = ValueError("No JSON body")
        response.text = text or ""
    else:
        response.json.return_value = json_data
        response.text = text if text is not None else json.dumps(json_data)
    return response


@pytest.fixture
def mock_http():
    """
    Patch httpx.AsyncClient for outbound calls.

    Tests set ``mock_http.post`` / ``mock_http.get`` return values or
    side effects; the default answer is an empty 200.
    """
    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.post = AsyncMock(return_value=make_response(200, {}))
        mock_instance.get = AsyncMock(return_value=make_response(200, {}))
        mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
        mock_instance.__aexit__ = AsyncMock(return_value=None)
        mock_client.return_value = mock_instance

        yield mock_instance


def calls_to(mock_method: AsyncMock, url_fragment: str) -> list:
    """קריאות שנשלחו ל-URL שמכיל את המחרוזת"""
    return [c for c in mock_method.call_args_list if url_fragment in c.args[0]]


# ============================================================================
# Paddle signing
# ============================================================================

def sign_paddle(body: bytes | str, secret: str = TEST_PADDLE_SECRET, timestamp: int | None = None) -> str:
    """ערך Paddle-Signature תקין עבור הגוף הנתון"""
    ts = int(time.time()) if timestamp is None else timestamp
    raw = body.encode("utf-8") if isinstance(body, str) else body
    return f"ts={ts};h1={compute_hmac_signature(f'{ts}:'.encode() + raw, secret)}"


def paddle_event_body(event_id: str = "evt_01", event_type: str = "transaction.completed") -> bytes:
    return json.dumps({
        "event_id": event_id,
        "event_type": event_type,
        "occurred_at": "2026-10-18T10:00:00Z",
        "data": {"id": "txn_123", "status": "completed"},
    }).encode("utf-8")


# ============================================================================
# ASGI client
# ============================================================================

# כתובת לקוח שונה לכל בדיקה - ה-rate limiter של webhooks חי לאורך כל הריצה
_client_hosts = itertools.count(1)


@pytest.fixture(scope="function")
async def test_client():
    """Create test client over the ASGI app"""
    n = next(_client_hosts)
    transport = ASGITransport(app=app, client=(f"10.0.{n // 250}.{n % 250 + 1}", 50000))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
