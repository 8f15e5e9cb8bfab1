"""
Centralized datetime utilities.

Timestamps are stored as naive datetimes in the configured local timezone.
Day, week, month and year boundaries are local wall-clock boundaries.
"""

from datetime import datetime, date, time, timedelta
from typing import Optional
import pytz

from config import settings


def get_local_tz() -> pytz.BaseTzInfo:
    """Get the configured local timezone."""
    return pytz.timezone(settings.timezone)


def get_local_now() -> datetime:
    """Get current time in local timezone (naive)."""
    local_tz = get_local_tz()
    return datetime.now(local_tz).replace(tzinfo=None)


def to_naive_local(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert any datetime to naive local time for database storage.

    Timezone-aware datetimes are converted to the local timezone and
    stripped; naive datetimes are assumed to already be local.
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        local_tz = get_local_tz()
        return dt.astimezone(local_tz).replace(tzinfo=None)

    return dt


def start_of_day(value) -> datetime:
    """Local midnight of the given date or datetime."""
    if isinstance(value, datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(value, time.min)


def end_of_day(value) -> datetime:
    """Last representable instant of the given date or datetime."""
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.max)


def start_of_week(value: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing value."""
    day = start_of_day(value)
    return day - timedelta(days=day.weekday())


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def start_of_year(value: datetime) -> datetime:
    return start_of_day(value).replace(month=1, day=1)


def minutes_between(start: datetime, end: datetime) -> float:
    """Fractional minutes from start to end."""
    return (end - start).total_seconds() / 60


def elapsed_seconds(started_at: datetime, now: Optional[datetime] = None) -> int:
    """
    Whole seconds elapsed since started_at, never negative.

    Used for live timer display only; stored durations are always
    computed from timestamps at stop time.
    """
    now = now or get_local_now()
    return max(0, int((now - started_at).total_seconds()))


def iter_days(range_start: date, range_end: date):
    """Yield each date from range_start to range_end inclusive."""
    current = range_start
    while current <= range_end:
        yield current
        current += timedelta(days=1)
