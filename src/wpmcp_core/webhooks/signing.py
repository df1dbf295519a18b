"""Webhook request signing.

The signed string is ``f"{timestamp}.{body}"`` and the header value is
``sha256=<hex HMAC-SHA256>``. Receivers should reject stale timestamps to
prevent replay.
"""

from __future__ import annotations

import time

from wpmcp_core.crypto import constant_time_equals, sign_hmac

SIGNATURE_PREFIX = "sha256="
DEFAULT_TOLERANCE_SECONDS = 300


def compute_signature(secret: str, timestamp: int | str, body: str) -> str:
    """Return the X-Webhook-Signature header value for a body."""
    return SIGNATURE_PREFIX + sign_hmac(f"{timestamp}.{body}", secret)


def verify_signature(
    body: str | bytes,
    timestamp: str | int,
    header: str,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Check a received webhook signature.

    Args:
        body: Raw request body
        timestamp: X-Webhook-Timestamp header value
        header: X-Webhook-Signature header value
        secret: The webhook's signing secret
        tolerance: Maximum accepted age in seconds (0 disables the check)
        now: Current unix time, for tests
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return False

    if tolerance:
        current = time.time() if now is None else now
        if abs(current - ts) > tolerance:
            return False

    if not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    return constant_time_equals(compute_signature(secret, ts, body), header)
