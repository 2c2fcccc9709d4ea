"""
SURGE WATCH — Common Utility Functions
"""
from datetime import datetime, timezone
from typing import Any
import math


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Return current UTC timestamp as ISO string."""
    return utc_now().isoformat()


def is_positive_number(value: Any) -> bool:
    """True for finite int/float values strictly above zero (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def pct_change(old_val: float, new_val: float) -> float:
    """Calculate percentage change between two values."""
    return ((new_val - old_val) / old_val) * 100.0


def to_utc_datetime(value: Any, default: datetime) -> datetime:
    """
    Coerce a timestamp into an aware UTC datetime.
    Numbers are epoch milliseconds, naive datetimes are taken as UTC,
    anything else falls back to ``default``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return default


def format_number(value: float, decimals: int = 2) -> str:
    """Fixed-point display string, e.g. 2.5 -> '2.50'."""
    return f"{value:.{decimals}f}"
