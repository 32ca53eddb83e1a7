# src/tasktrack/tasks/time_classifier.py

"""
Deadline classification and date helpers.

All functions take `now` explicitly (ms since epoch); nothing here reads the
clock. Calendar-day computations use `tz` when given, otherwise the local
zone of the process.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, tzinfo

MS_PER_DAY = 1000 * 60 * 60 * 24

DATE_FORMAT = "%d.%m.%Y"
TIME_FORMAT = "%H:%M"
DATETIME_FORMAT = f"{DATE_FORMAT} {TIME_FORMAT}"


def _to_datetime(ts: int, tz: tzinfo | None) -> datetime:
    dt = datetime.fromtimestamp(ts / 1000, tz=tz)
    return dt if tz is not None else dt.astimezone()


def _to_ms(dt: datetime) -> int:
    return int(round(dt.timestamp() * 1000))


def is_overdue(ts: int, now: int) -> bool:
    return ts < now


def days_until(ts: int, now: int) -> int:
    """
    Whole days from now until ts, truncated toward zero.

    Display only: "tomorrow 00:01" seen at 23:59 is 0 days away. Use
    `is_due_today` for calendar classification.
    """
    diff = ts - now
    days = abs(diff) // MS_PER_DAY
    return days if diff >= 0 else -days


def start_of_day(now: int, tz: tzinfo | None = None) -> int:
    day = _to_datetime(now, tz)
    return _to_ms(datetime.combine(day.date(), time.min, tzinfo=day.tzinfo))


def end_of_day(now: int, tz: tzinfo | None = None) -> int:
    day = _to_datetime(now, tz)
    end = datetime.combine(day.date(), time(23, 59, 59, 999000), tzinfo=day.tzinfo)
    return _to_ms(end)


def end_of_tomorrow(now: int, tz: tzinfo | None = None) -> int:
    day = _to_datetime(now, tz) + timedelta(days=1)
    end = datetime.combine(day.date(), time(23, 59, 59, 999000), tzinfo=day.tzinfo)
    return _to_ms(end)


def is_due_today(ts: int, now: int, tz: tzinfo | None = None) -> bool:
    return start_of_day(now, tz) <= ts <= end_of_day(now, tz)


def create_timestamp(
    year: int,
    month: int,
    day: int,
    hour: int = 23,
    minute: int = 59,
    tz: tzinfo | None = None,
) -> int:
    """Deadline for a calendar date; defaults to the end of that day (23:59)."""
    dt = datetime(year, month, day, hour, minute, tzinfo=tz)
    return _to_ms(dt if tz is not None else dt.astimezone())


def format_date(ts: int, tz: tzinfo | None = None) -> str:
    return _to_datetime(ts, tz).strftime(DATE_FORMAT)


def format_time(ts: int, tz: tzinfo | None = None) -> str:
    return _to_datetime(ts, tz).strftime(TIME_FORMAT)


def format_datetime(ts: int, tz: tzinfo | None = None) -> str:
    return _to_datetime(ts, tz).strftime(DATETIME_FORMAT)
