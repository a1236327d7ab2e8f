"""
Datetime utilities for consistent timezone handling across the application.

All business dates (booking dates, financial periods, tenure evaluation) are
interpreted in clinic local time, a fixed UTC offset taken from configuration.
"""

import logging
import re
from calendar import monthrange
from datetime import datetime, timezone, timedelta, date
from typing import Optional, Tuple

from core.config import CLINIC_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)

# Clinic timezone constant (fixed offset)
CLINIC_TZ = timezone(timedelta(hours=CLINIC_UTC_OFFSET_HOURS))

_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def clinic_now() -> datetime:
    """
    Get current clinic-local datetime.

    Returns:
        Current datetime with the clinic timezone attached
    """
    return datetime.now(CLINIC_TZ)


def ensure_clinic_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the clinic timezone.

    Naive datetimes are assumed to already be clinic-local.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=CLINIC_TZ)
    return dt.astimezone(CLINIC_TZ)


def to_clinic_naive(value: date | datetime) -> datetime:
    """
    Convert a date or datetime to a naive clinic-local datetime.

    Dates become midnight. Used where two instants are subtracted and mixing
    aware and naive values would otherwise raise.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(CLINIC_TZ)
        return value.replace(tzinfo=None)
    return datetime(value.year, value.month, value.day)


def sunday_based_weekday(d: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (d.weekday() + 1) % 7


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD format.

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    try:
        return datetime.strptime(date_str.strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD): {date_str}") from e


def parse_period(period: str) -> Tuple[int, int]:
    """
    Parse a financial period key ("YYYY-MM") into (year, month).

    Raises:
        ValueError: If the key is malformed or the month is out of range
    """
    match = _PERIOD_PATTERN.match(period or "")
    if not match:
        raise ValueError(f"Invalid period format (expected YYYY-MM): {period}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period: {period}")
    return year, month


def format_period(year: int, month: int) -> str:
    """Format (year, month) as a "YYYY-MM" period key."""
    return f"{year:04d}-{month:02d}"


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month (both inclusive)."""
    last_day = monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """
    Move (year, month) by ``delta`` months, crossing year boundaries.

    Example:
        shift_month(2024, 1, -1) == (2023, 12)
    """
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
