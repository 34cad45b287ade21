"""
Signed cookie values.

The OAuth state is handed to the browser as ``<value>.<hmac>`` signed with
HMAC-SHA256 over the value, keyed by ``config.cookie_secret``
(env var: ``COOKIE_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional


def sign_value(value: str, secret: str) -> str:
    sig = hmac.new(secret.encode(), value.encode(), hashlib.sha256).hexdigest()
    return f"{value}.{sig}"


def unsign_value(signed: Optional[str], secret: str) -> Optional[str]:
    """Return the original value, or None when missing / tampered."""
    if not signed:
        return None
    value, sep, sig = signed.rpartition(".")
    if not sep or not value:
        return None
    expected = hmac.new(secret.encode(), value.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(sig, expected):
        return None
    return value
