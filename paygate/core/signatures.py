"""
Webhook signature verification helpers.

Local HMAC verification for processors that sign the payload with a shared
secret (Paddle: ``Paddle-Signature: ts=...;h1=...``), plus the replay-window
and payload-parsing helpers every webhook adapter needs. Remote verification
(PayPal) is done by the adapter itself against the processor API.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any
from urllib.parse import parse_qsl

DEFAULT_TIMESTAMP_TOLERANCE_SECONDS = 300


def _resolve_digest(algorithm: str):
    """'sha256' / 'SHA-256' / 'sha512' → hashlib constructor."""
    name = algorithm.replace("-", "").lower()
    if name not in hashlib.algorithms_guaranteed:
        raise ValueError(f"Unsupported HMAC algorithm: {algorithm}")
    return getattr(hashlib, name)


def compute_hmac_signature(
    payload: str | bytes,
    secret: str,
    algorithm: str = "sha256",
) -> str:
    """HMAC hex digest of ``payload`` keyed by ``secret``."""
    if not secret:
        raise ValueError("HMAC secret must not be empty")
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, _resolve_digest(algorithm)).hexdigest()


def strip_signature_prefix(signature: str) -> str:
    """'sha256=abc' → 'abc'. חתימה ללא תגית מוחזרת כמו שהיא."""
    if "=" in signature:
        return signature.split("=", 1)[1]
    return signature


def compare_signatures(received: str | None, expected: str | None) -> bool:
    """Constant-time comparison; False for empty values or a length mismatch."""
    if not received or not expected or len(received) != len(expected):
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def verify_hmac_signature(
    signed_payload: str | bytes,
    signature: str,
    secret: str,
    algorithm: str = "sha256",
) -> bool:
    """
    Recompute the keyed hash of ``signed_payload`` and compare it to ``signature``.

    Never raises for a mismatch. Raises ``ValueError`` only for malformed
    inputs: empty secret or an unknown hash algorithm.

    Args:
        signed_payload: processor-defined canonical string (e.g. "{ts}:{body}")
        signature: value from the request header, optionally tagged ("sha256=...")
        secret: shared webhook secret
        algorithm: hash algorithm name
    """
    expected = compute_hmac_signature(signed_payload, secret, algorithm)
    return compare_signatures(strip_signature_prefix(signature or "").lower(), expected)


def parse_signature_header(
    header: str,
    pair_separator: str = ";",
    key_separator: str = "=",
) -> dict[str, str]:
    """
    Split a multi-part signature header into a dict.

    ``"ts=1671552777;h1=eb4d..."`` → ``{"ts": "1671552777", "h1": "eb4d..."}``.
    Parts without a key separator are ignored.
    """
    parts: dict[str, str] = {}
    for part in header.split(pair_separator):
        key, sep, value = part.strip().partition(key_separator)
        if sep and key:
            parts[key.strip()] = value.strip()
    return parts


def is_timestamp_valid(
    timestamp: int | float | str,
    tolerance_seconds: int = DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """
    Replay-window check: the embedded timestamp must be within
    ``tolerance_seconds`` of the current time, in either direction.
    """
    try:
        ts = float(timestamp)
    except (TypeError, ValueError):
        return False
    current = time.time() if now is None else now
    return abs(current - ts) <= tolerance_seconds


def parse_webhook_payload(body: bytes | str, content_type: str | None = None) -> dict[str, Any]:
    """
    Parse a webhook body as JSON or form-urlencoded depending on content type.

    Unknown content types are parsed as JSON. Raises ``ValueError`` when the
    body cannot be parsed into an object.
    """
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = body

    content_type = (content_type or "").lower()
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(text, keep_blank_values=True))

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse webhook payload: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Failed to parse webhook payload: expected a JSON object")
    return payload
