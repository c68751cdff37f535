from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional


def safe_int(value: Any, default: int = 0) -> int:
    """Coerce loosely typed row values (None, str, bool) to int."""
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3).

    The builtin ``round`` uses banker's rounding, which would turn 12.5% into 12.
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent(numerator: int, denominator: int) -> int:
    """Whole-number percentage of ``numerator / denominator``; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0
    return round_half_away(Decimal(100 * numerator) / Decimal(denominator))


def current_timestamp() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def coerce_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value.split("T")[0])
        except ValueError:
            return None
    return None


def local_today(tz: tzinfo) -> date:
    """Calendar day 'now' in the given timezone."""
    return datetime.now(tz).date()
