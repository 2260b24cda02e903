"""Calendar helpers in the business timezone."""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterator
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_now(tz: ZoneInfo, clock: Callable[[], datetime] = utcnow) -> datetime:
    """Current time in ``tz``."""
    return clock().astimezone(tz)


def local_today(tz: ZoneInfo, clock: Callable[[], datetime] = utcnow) -> date:
    """Current calendar date in ``tz``."""
    return local_now(tz, clock).date()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def monday_of(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def iso_week_number(day: date) -> int:
    return day.isocalendar()[1]


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Every date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)
