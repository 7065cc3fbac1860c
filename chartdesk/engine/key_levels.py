"""Key support/resistance levels from calendar-period opens and extremes.

Candles are grouped in UTC by day, ISO week (Monday start), month and
year. For each granularity the period containing the latest candle is
"current" and exposes its open; the latest earlier period that has data
is "previous" and exposes its high, low and close. Yearly only exposes
the current open.

Gaps (weekends, exchange holidays, missing bars) are skipped: previous
means the previous period present in the data, not the previous
calendar period.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum

from chartdesk.market.types import Candle
from chartdesk.utils.time import (
    day_start,
    month_start,
    next_day_boundary,
    next_month_boundary,
    next_week_boundary,
    next_year_boundary,
    utc_now,
    week_start,
    year_start,
)


class LevelType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class LevelSubtype(str, Enum):
    OPEN = "open"
    HIGH = "high"
    LOW = "low"
    CLOSE = "close"


@dataclass(frozen=True)
class KeyLevel:
    """One horizontal level to draw on a chart."""

    price: float
    label: str
    type: LevelType
    subtype: LevelSubtype


@dataclass(frozen=True)
class PeriodOHLC:
    """Aggregate of one calendar period."""

    start: date
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class PeriodLevels:
    """Current open plus previous period extremes for one granularity."""

    open: float | None = None
    prev_high: float | None = None
    prev_low: float | None = None
    prev_close: float | None = None


@dataclass(frozen=True)
class KeyLevelsSnapshot:
    daily: PeriodLevels = PeriodLevels()
    weekly: PeriodLevels = PeriodLevels()
    monthly: PeriodLevels = PeriodLevels()
    yearly: PeriodLevels = PeriodLevels()


# Label for (open, prev high, prev low, prev close) per granularity
_LABELS: dict[LevelType, tuple[str, str, str, str]] = {
    LevelType.DAILY: ("D Open", "PDH", "PDL", "PDC"),
    LevelType.WEEKLY: ("W Open", "PWH", "PWL", "PWC"),
    LevelType.MONTHLY: ("M Open", "PMH", "PML", "PMC"),
    LevelType.YEARLY: ("Y Open", "PYH", "PYL", "PYC"),
}


def group_periods(
    candles: Sequence[Candle],
    key: Callable[[int], date],
) -> list[PeriodOHLC]:
    """Group candles by ``key(time)`` into per-period OHLC, oldest first."""
    groups: dict[date, list[Candle]] = {}
    for candle in sorted(candles, key=lambda c: c.time):
        groups.setdefault(key(candle.time), []).append(candle)

    periods = [
        PeriodOHLC(
            start=start,
            open=bars[0].open,
            high=max(b.high for b in bars),
            low=min(b.low for b in bars),
            close=bars[-1].close,
        )
        for start, bars in groups.items()
    ]
    periods.sort(key=lambda p: p.start)
    return periods


def _period_levels(periods: list[PeriodOHLC], with_previous: bool = True) -> PeriodLevels:
    if not periods:
        return PeriodLevels()
    current = periods[-1]
    if not with_previous or len(periods) < 2:
        return PeriodLevels(open=current.open)
    prev = periods[-2]
    return PeriodLevels(
        open=current.open,
        prev_high=prev.high,
        prev_low=prev.low,
        prev_close=prev.close,
    )


def calculate_key_levels(candles: Sequence[Candle]) -> KeyLevelsSnapshot:
    """Structured key levels for all four granularities."""
    if not candles:
        return KeyLevelsSnapshot()
    return KeyLevelsSnapshot(
        daily=_period_levels(group_periods(candles, day_start)),
        weekly=_period_levels(group_periods(candles, week_start)),
        monthly=_period_levels(group_periods(candles, month_start)),
        yearly=_period_levels(group_periods(candles, year_start), with_previous=False),
    )


def snapshot_to_levels(snapshot: KeyLevelsSnapshot) -> list[KeyLevel]:
    """Flatten a snapshot into drawable levels, omitting undefined ones."""
    result: list[KeyLevel] = []
    by_type = (
        (LevelType.DAILY, snapshot.daily),
        (LevelType.WEEKLY, snapshot.weekly),
        (LevelType.MONTHLY, snapshot.monthly),
        (LevelType.YEARLY, snapshot.yearly),
    )
    for level_type, levels in by_type:
        labels = _LABELS[level_type]
        values = (
            (levels.open, LevelSubtype.OPEN),
            (levels.prev_high, LevelSubtype.HIGH),
            (levels.prev_low, LevelSubtype.LOW),
            (levels.prev_close, LevelSubtype.CLOSE),
        )
        for label, (price, subtype) in zip(labels, values):
            if price is None:
                continue
            result.append(
                KeyLevel(price=price, label=label, type=level_type, subtype=subtype),
            )
    return result


def key_levels(candles: Sequence[Candle]) -> list[KeyLevel]:
    """Key levels for a candle series, ready to draw."""
    return snapshot_to_levels(calculate_key_levels(candles))


# --- Period countdowns ---


@dataclass(frozen=True)
class CountdownTimers:
    daily: str
    weekly: str
    monthly: str
    yearly: str


def format_countdown(seconds: float) -> str:
    """``H:MM:SS`` under a day, ``Nd Nh Nm`` otherwise."""
    if seconds <= 0:
        return "0:00:00"
    total = int(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    return f"{hours}:{minutes:02d}:{secs:02d}"


def countdown_timers(now: datetime | None = None) -> CountdownTimers:
    """Time left until the current day, week, month and year close (UTC).

    A naive ``now`` is taken as UTC.
    """
    if now is None:
        now = utc_now()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    else:
        now = now.astimezone(UTC)
    return CountdownTimers(
        daily=format_countdown((next_day_boundary(now) - now).total_seconds()),
        weekly=format_countdown((next_week_boundary(now) - now).total_seconds()),
        monthly=format_countdown((next_month_boundary(now) - now).total_seconds()),
        yearly=format_countdown((next_year_boundary(now) - now).total_seconds()),
    )
