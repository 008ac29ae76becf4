"""Local access-token validity checks without contacting the provider.

The access token is assumed to be a JWT. Only the ``exp`` claim is read;
the signature is not verified, because the question answered here is "is
it worth sending?", not "is it authentic?". A token that cannot be decoded
is policy-equivalent to an absent token.
"""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any, Optional

import jwt

from devauth.models import DEFAULT_SKEW_SECONDS


def _unverified_claims(token: str) -> Optional[dict[str, Any]]:
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except (jwt.PyJWTError, RecursionError):
        # RecursionError: pathologically nested JSON segments
        return None
    return claims if isinstance(claims, dict) else None


def decode_expiry_seconds(token: str) -> Optional[float]:
    """Return the ``exp`` claim as epoch seconds, or ``None`` if unavailable.

    Never raises: any malformed segment, non-object payload, or non-numeric,
    non-finite, or out-of-range ``exp`` yields ``None``.
    """
    claims = _unverified_claims(token)
    if claims is None:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    try:
        value = float(exp)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def decode_expiry(token: str) -> Optional[datetime]:
    """Return the token's expiry as an aware UTC datetime, or ``None``."""
    exp = decode_expiry_seconds(token)
    if exp is None:
        return None
    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def is_usable(
    token: Optional[str],
    skew_seconds: int = DEFAULT_SKEW_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """True only if *token* expires strictly later than ``now + skew_seconds``.

    Args:
        token: The raw access token. ``None`` or empty is unusable.
        skew_seconds: Safety margin so a token never expires mid-request.
        now: Epoch seconds to compare against; defaults to the current time.
    """
    if not token:
        return False
    exp = decode_expiry_seconds(token)
    if exp is None:
        return False
    current = time.time() if now is None else now
    return exp > current + skew_seconds
