"""
application.codec.formats - Display vs. canonical date, time and money.

Storage always holds `YYYY-MM-DD` dates and 24-hour `HH:MM` times. Exports
show `Friday, January 16, 2026` and `2:00 PM`; imports accept either.
Names are fixed English so output does not depend on the process locale.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

WEEKDAYS = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_MONTH_NUMBERS = {name.lower(): number for number, name in enumerate(MONTHS, start=1)}
_WEEKDAY_NAMES = {name.lower() for name in WEEKDAYS}

_DISPLAY_DATE = re.compile(r"^([A-Za-z]+),\s*([A-Za-z]+)\s+(\d{1,2}),\s*(\d{4})$")
_DISPLAY_TIME = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")
_CANONICAL_TIME = re.compile(r"^(\d{1,2}):(\d{2})$")
_DECIMAL = re.compile(r"^-?\d+(\.\d+)?$", re.ASCII)
_INTEGER = re.compile(r"^-?\d+$", re.ASCII)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def parse_canonical_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_display_date(value: str) -> Optional[date]:
    match = _DISPLAY_DATE.match(value.strip())
    if match is None:
        return None
    weekday, month_name, day, year = match.groups()
    month = _MONTH_NUMBERS.get(month_name.lower())
    if weekday.lower() not in _WEEKDAY_NAMES or month is None:
        return None
    try:
        return date(int(year), month, int(day))
    except ValueError:
        return None


def format_display_date(value: date) -> str:
    return f"{WEEKDAYS[value.weekday()]}, {MONTHS[value.month - 1]} {value.day}, {value.year}"


def format_canonical_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def display_date_or_raw(stored: str) -> str:
    """Canonical -> display; unparsable values pass through untouched."""
    parsed = parse_canonical_date(stored)
    return format_display_date(parsed) if parsed else stored


def canonical_date_or_raw(text: str) -> str:
    """Display format first, then canonical, then the raw string."""
    parsed = parse_display_date(text) or parse_canonical_date(text)
    return format_canonical_date(parsed) if parsed else text


# ---------------------------------------------------------------------------
# Times (kept as (hour, minute) pairs; no date attached)
# ---------------------------------------------------------------------------

def parse_canonical_time(value: str) -> Optional[tuple[int, int]]:
    match = _CANONICAL_TIME.match(value.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def parse_display_time(value: str) -> Optional[tuple[int, int]]:
    match = _DISPLAY_TIME.match(value.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not 1 <= hour <= 12 or minute > 59:
        return None
    hour %= 12
    if match.group(3).lower() == "pm":
        hour += 12
    return hour, minute


def format_display_time(hour: int, minute: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def format_canonical_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def display_time_or_raw(stored: str) -> str:
    parsed = parse_canonical_time(stored)
    return format_display_time(*parsed) if parsed else stored


def canonical_time_or_raw(text: str) -> str:
    """12-hour display format first, then 24-hour, then the raw string."""
    parsed = parse_display_time(text) or parse_canonical_time(text)
    return format_canonical_time(*parsed) if parsed else text


# ---------------------------------------------------------------------------
# Money and counts
# ---------------------------------------------------------------------------

def format_currency(amount: float) -> str:
    return f"${amount:.2f}"


def parse_currency(text: str, default: float = 0.0) -> float:
    """Plain decimal after dropping "$"; anything else gives `default`."""
    cleaned = text.replace("$", "").strip()
    if not _DECIMAL.match(cleaned):
        return default
    return float(cleaned)


def parse_quantity(text: str, default: int = 1) -> int:
    cleaned = text.strip()
    if not _INTEGER.match(cleaned):
        return default
    return int(cleaned)

