"""
Calendar arithmetic on timezone-stable "YYYY-MM-DD" strings.

Every function here works on calendar days in an explicitly supplied
timezone. Nothing reads the process TZ, and nothing round-trips through a
UTC instant (local midnight in IST is the previous day in UTC).
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Union
from zoneinfo import ZoneInfo

from app.domain.errors import InvalidDate, InvalidFrequency


class Frequency(str, Enum):
    """Installment frequency"""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


_DAY_STEPS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
}

_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DateLike = Union[str, date, datetime]


def resolve_timezone(tz: Union[str, tzinfo]) -> tzinfo:
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def parse_frequency(frequency: Union[str, Frequency]) -> Frequency:
    """Validate a frequency token (case-insensitive)."""
    if isinstance(frequency, Frequency):
        return frequency
    try:
        return Frequency(str(frequency).strip().upper())
    except ValueError:
        raise InvalidFrequency(frequency) from None


def parse_calendar_date(value: str) -> date:
    """Parse a canonical "YYYY-MM-DD" string into a date."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidDate(value)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDate(value) from None


def to_calendar_string(value: DateLike, tz: Union[str, tzinfo]) -> str:
    """
    Normalize any date representation to the calendar day in ``tz``.

    - "YYYY-MM-DD" strings and ``date`` objects are already calendar days
    - aware datetimes (or ISO strings carrying an offset) are converted
      into ``tz`` before the day is taken
    - naive datetimes are wall-clock times in ``tz``
    """
    zone = resolve_timezone(tz)

    if isinstance(value, str):
        text = value.strip()
        if _DATE_RE.match(text):
            return parse_calendar_date(text).isoformat()
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidDate(value) from None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(zone)
        return value.date().isoformat()

    if isinstance(value, date):
        return value.isoformat()

    raise InvalidDate(value)


def _add_months(day: date, months: int) -> date:
    # Day-of-month overflow rolls into the following month
    # (Jan 31 + 1 month -> Mar 3 in a non-leap year).
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1) + timedelta(days=day.day - 1)


def add_step(calendar_date: str, frequency: Union[str, Frequency]) -> str:
    """Return the next installment date after ``calendar_date``."""
    freq = parse_frequency(frequency)
    current = parse_calendar_date(calendar_date)

    try:
        if freq in _DAY_STEPS:
            return (current + timedelta(days=_DAY_STEPS[freq])).isoformat()
        return _add_months(current, _MONTH_STEPS[freq]).isoformat()
    except (OverflowError, ValueError):
        # Next step lies past 9999-12-31
        raise InvalidDate(f"{calendar_date} + {freq.value}") from None


def compare(a: str, b: str) -> int:
    """Three-way comparison of canonical calendar strings."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def today_in(tz: Union[str, tzinfo]) -> str:
    """Current calendar day in ``tz``."""
    return datetime.now(resolve_timezone(tz)).date().isoformat()
