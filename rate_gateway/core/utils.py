"""
Core Utilities

Shared helpers used across the gateway.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def round_money(value: float) -> float:
    """Round a summed monetary amount to cents."""
    return round(value, 2)
