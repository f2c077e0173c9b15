"""Utility functions for shelfpace."""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4


def utc_now() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_uuid() -> str:
    """Generate a UUID string for entity ids."""
    return str(uuid4())


def round_half_up(value: float) -> int:
    """
    Round a number to the nearest integer, halves rounding up.

    Python's built-in ``round`` uses banker's rounding, which would turn
    a pace of 25 pages/hour into a 12 page daily target instead of 13.

    Args:
        value: The number to round

    Returns:
        The rounded integer

    Example:
        >>> round_half_up(12.5)
        13
        >>> round_half_up(2.4)
        2
    """
    return int(math.floor(value + 0.5))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict ``YYYY-MM-DD`` date string.

    Single-digit months and days are accepted (``2025-1-5``), anything else
    that does not describe a real calendar day returns None.

    Example:
        >>> parse_iso_date("2025-02-03")
        datetime.date(2025, 2, 3)
        >>> parse_iso_date("2025-02-30") is None
        True
    """
    if not value:
        return None
    parts = value.strip().split("-")
    if len(parts) != 3 or not all(p.isdigit() for p in parts) or len(parts[0]) != 4:
        return None
    try:
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError:
        return None


def date_range(start: date, end: date) -> list[date]:
    """
    List every day from start to end inclusive.

    Example:
        >>> [d.day for d in date_range(date(2025, 1, 30), date(2025, 2, 1))]
        [30, 31, 1]
    """
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days
