"""
Saakie - Shared Helpers
========================
Pure utility functions with NO database or module dependencies.
"""

import re
import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> float:
    """Serialize a Numeric column value for JSON output."""
    return float(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_minor_units(amount) -> int:
    """Rupees → paise (gateways take integer minor units)."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


# ==========================================
# Identifiers
# ==========================================

_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """ORD-<epoch ms>-<6 uppercase alphanumerics>."""
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(6))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or secrets.token_hex(4)
