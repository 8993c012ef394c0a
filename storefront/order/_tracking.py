"""
Tracking ids — `ORD-<base36 epoch millis>-<6 random base36>`, uppercase.

Safe to show to the shopper: not derived from the order id, so it does not
leak order volume and cannot be guessed from a neighbour.
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime

from storefront.cart._types import now

ALPHABET = string.digits + string.ascii_uppercase
RANDOM_LENGTH = 6


def base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(ALPHABET[rem])
    return "".join(reversed(digits))


def new_tracking_id(prefix: str = "ORD", at: datetime | None = None) -> str:
    millis = int((at or now()).timestamp() * 1000)
    suffix = "".join(secrets.choice(ALPHABET) for _ in range(RANDOM_LENGTH))
    return f"{prefix}-{base36(millis)}-{suffix}".upper()


def is_tracking_id(value: str, prefix: str = "ORD") -> bool:
    pattern = rf"{re.escape(prefix)}-[0-9A-Z]+-[0-9A-Z]{{{RANDOM_LENGTH}}}"
    return re.fullmatch(pattern, value) is not None


__all__ = (
    "base36",
    "new_tracking_id",
    "is_tracking_id",
)
