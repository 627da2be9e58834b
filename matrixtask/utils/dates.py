"""Date helpers and the relative date phrase resolver.

Every resolver takes an optional ``now`` so results are reproducible; when it
is omitted the current local time is used. Resolved dates keep the tzinfo of
``now`` and are truncated to 00:00:00.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

SATURDAY = 5
MONDAY = 0


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


def start_of_day(value: datetime) -> datetime:
    """Truncate a datetime to 00:00:00 on the same calendar day."""
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _next_weekday(value: datetime, weekday: int) -> datetime:
    # Strictly after ``value``: on the target weekday itself this jumps a week.
    days_ahead = (weekday - value.weekday() - 1) % 7 + 1
    return value + timedelta(days=days_ahead)


def days_later(days: int, now: Optional[datetime] = None) -> datetime:
    """Return the start of the day ``days`` calendar days from now."""
    return start_of_day(_now(now) + timedelta(days=days))


def tomorrow(now: Optional[datetime] = None) -> datetime:
    """Return tomorrow at 00:00:00."""
    return days_later(1, now)


def this_weekend(now: Optional[datetime] = None) -> datetime:
    """Return the upcoming Saturday at 00:00:00.

    On a Saturday this is the following Saturday, never today.
    """
    return start_of_day(_next_weekday(_now(now), SATURDAY))


def next_week(now: Optional[datetime] = None) -> datetime:
    """Return the upcoming Monday at 00:00:00.

    On a Monday this is the following Monday.
    """
    return start_of_day(_next_weekday(_now(now), MONDAY))


def format_date(value: date) -> str:
    """Format a date for display, e.g. ``2026年2月11日``."""
    return f"{value.year}年{value.month}月{value.day}日"


def is_today(value: datetime, now: Optional[datetime] = None) -> bool:
    """Whether ``value`` falls on the same calendar day as now."""
    return value.date() == _now(now).date()


def is_past(value: datetime, now: Optional[datetime] = None) -> bool:
    """Whether ``value`` lies before now."""
    current = now if now is not None else datetime.now(value.tzinfo)
    return value < current
