"""UTC helpers for candle timestamps and calendar bucketing.

Candle times are unix seconds. All calendar grouping (day, ISO week
starting Monday, month, year) is done in UTC.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta


def utc_now() -> datetime:
    """Return the current UTC datetime, timezone-aware."""
    return datetime.now(UTC)


def from_unix(ts: int | float) -> datetime:
    """Convert unix seconds to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(ts, UTC)


def to_unix(dt: datetime) -> int:
    """Convert a datetime to unix seconds. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp())


def day_start(ts: int) -> date:
    """UTC calendar day containing ``ts``."""
    return from_unix(ts).date()


def week_start(ts: int) -> date:
    """Monday of the ISO week containing ``ts``."""
    d = from_unix(ts).date()
    return d - timedelta(days=d.weekday())


def month_start(ts: int) -> date:
    """First day of the UTC month containing ``ts``."""
    return from_unix(ts).date().replace(day=1)


def year_start(ts: int) -> date:
    """January 1st of the UTC year containing ``ts``."""
    return from_unix(ts).date().replace(month=1, day=1)


def next_day_boundary(now: datetime) -> datetime:
    """Next UTC midnight after ``now``."""
    midnight = datetime(now.year, now.month, now.day, tzinfo=UTC)
    return midnight + timedelta(days=1)


def next_week_boundary(now: datetime) -> datetime:
    """Next Monday 00:00 UTC strictly after ``now``'s day."""
    midnight = datetime(now.year, now.month, now.day, tzinfo=UTC)
    days_until_monday = (7 - now.weekday()) % 7 or 7
    return midnight + timedelta(days=days_until_monday)


def next_month_boundary(now: datetime) -> datetime:
    """First day of the next UTC month, 00:00."""
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=UTC)
    return datetime(now.year, now.month + 1, 1, tzinfo=UTC)


def next_year_boundary(now: datetime) -> datetime:
    """January 1st of the next UTC year, 00:00."""
    return datetime(now.year + 1, 1, 1, tzinfo=UTC)
