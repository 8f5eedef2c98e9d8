"""Shared utilities used across the booking engine."""

from datetime import date, datetime
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def normalize_date(value: str) -> Optional[str]:
    """Normalize a date string to zero-padded YYYY-MM-DD.

    Returns None when the value is not a valid calendar date. Every date
    used as a store key must go through here, so "2030-9-1" and
    " 2030-09-01 " land on the same record.

    Examples:
        >>> normalize_date("2030-9-1")
        '2030-09-01'
        >>> normalize_date("2030-02-30") is None
        True
    """
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).strftime(DATE_FORMAT)
    except ValueError:
        return None


def is_valid_date(value: str) -> bool:
    """Check a date string parses as YYYY-MM-DD."""
    return normalize_date(value) is not None


def normalize_time(value: str) -> Optional[str]:
    """Normalize a time string to zero-padded HH:MM, dropping any seconds.

    Returns None when the value is not a valid time.

    Examples:
        >>> normalize_time("9:05")
        '09:05'
        >>> normalize_time("14:30:00")
        '14:30'
        >>> normalize_time("25:00") is None
        True
    """
    value = value.strip()
    for fmt in (TIME_FORMAT, "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).strftime(TIME_FORMAT)
        except ValueError:
            continue
    return None


def today_iso(today: Optional[date] = None) -> str:
    """Return the caller's local date (or the given one) as YYYY-MM-DD."""
    return (today or date.today()).strftime(DATE_FORMAT)


def format_day_month(value: str) -> str:
    """Format a YYYY-MM-DD date as '18 October' for user-facing hints."""
    parsed = datetime.strptime(value, DATE_FORMAT)
    return f"{parsed.day} {MONTH_NAMES[parsed.month - 1]}"
