"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Request signing (HMAC-SHA256 signatures for outbound and inbound webhooks)
- Constant-time signature comparison

Usage:
    from core.helpers import sign_payload, verify_signature

    signature = sign_payload(body, secret)
    if not verify_signature(body, secret, request.headers.get("X-Webhook-Signature")):
        return HttpResponse(status=401)
"""

from __future__ import annotations

import hashlib
import hmac


def sign_payload(payload: bytes | str, secret: str) -> str:
    """
    Compute the hex HMAC-SHA256 signature of a payload.

    Args:
        payload: Raw request body (str is encoded as UTF-8)
        secret: Shared signing secret

    Returns:
        Lowercase hex digest

    Example:
        body = json.dumps(data)
        headers["X-Webhook-Signature"] = sign_payload(body, integration.webhook_secret)
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes | str, secret: str, signature: str | None) -> bool:
    """
    Check a received signature against the expected HMAC-SHA256 digest.

    Comparison is constant-time. A missing signature never verifies.
    """
    if not signature:
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
