"""Indicator calculation: RSI, Hull Suite and Guppy multiple moving averages.

Streaming building blocks (SMA, EMA, WMA, RSI) take one float per update
and report None until warm. The series functions (rsi, hull_suite, guppy)
run them over a candle sequence and emit time-aligned frozen points,
skipping every index where a value is not yet defined.

Insufficient input is never an error: the series functions return an
empty list, which callers treat as "not yet renderable".
"""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from chartdesk.market.types import Candle

GUPPY_SHORT_PERIODS = (3, 5, 8, 10, 12, 15)
GUPPY_LONG_PERIODS = (30, 35, 40, 45, 50, 60)
GUPPY_MIN_BARS = max(GUPPY_LONG_PERIODS)


class SMA:
    """Simple Moving Average via ring buffer with running sum. O(1) per update."""

    __slots__ = ("_buf", "_period", "_sum")

    def __init__(self, period: int) -> None:
        if period < 1:
            raise ValueError(f"SMA period must be >= 1, got {period}")
        self._period = period
        self._buf: deque[float] = deque(maxlen=period)
        self._sum: float = 0.0

    def update(self, value: float) -> None:
        """Add a value. Evicts oldest if at capacity."""
        if len(self._buf) == self._period:
            self._sum -= self._buf[0]
        self._buf.append(value)
        self._sum += value

    @property
    def value(self) -> float | None:
        """Current SMA, or None if not warm."""
        if len(self._buf) < self._period:
            return None
        return self._sum / self._period

    @property
    def is_warm(self) -> bool:
        return len(self._buf) >= self._period


class EMA:
    """Exponential Moving Average seeded with the SMA of the first ``period`` values."""

    __slots__ = ("_multiplier", "_period", "_seed", "_value")

    def __init__(self, period: int) -> None:
        if period < 1:
            raise ValueError(f"EMA period must be >= 1, got {period}")
        self._period = period
        self._multiplier = 2.0 / (period + 1)
        self._seed = SMA(period)
        self._value: float | None = None

    def update(self, value: float) -> None:
        if self._value is None:
            self._seed.update(value)
            self._value = self._seed.value
            return
        self._value = (value - self._value) * self._multiplier + self._value

    @property
    def value(self) -> float | None:
        """Current EMA, or None until ``period`` values have been seen."""
        return self._value


class WMA:
    """Linearly Weighted Moving Average: newest value weighs ``period``, oldest 1."""

    __slots__ = ("_buf", "_period", "_weight_sum")

    def __init__(self, period: int) -> None:
        if period < 1:
            raise ValueError(f"WMA period must be >= 1, got {period}")
        self._period = period
        self._buf: deque[float] = deque(maxlen=period)
        self._weight_sum = period * (period + 1) / 2

    def update(self, value: float) -> None:
        self._buf.append(value)

    @property
    def value(self) -> float | None:
        if len(self._buf) < self._period:
            return None
        # deque is oldest-first, so position i carries weight i + 1
        total = sum(v * (i + 1) for i, v in enumerate(self._buf))
        return total / self._weight_sum


class RSI:
    """Wilder-smoothed Relative Strength Index.

    The first average gain/loss is the simple mean of the first ``period``
    close-to-close changes; afterwards avg = (avg * (period - 1) + new) / period.
    """

    __slots__ = (
        "_avg_gain",
        "_avg_loss",
        "_count",
        "_gain_sum",
        "_loss_sum",
        "_period",
        "_prev_close",
    )

    def __init__(self, period: int = 14) -> None:
        if period < 1:
            raise ValueError(f"RSI period must be >= 1, got {period}")
        self._period = period
        self._prev_close: float | None = None
        self._gain_sum = 0.0
        self._loss_sum = 0.0
        self._count = 0
        self._avg_gain: float | None = None
        self._avg_loss: float | None = None

    def update(self, close: float) -> float | None:
        """Feed the next close. Returns the RSI once warm, else None."""
        if self._prev_close is None:
            self._prev_close = close
            return None

        change = close - self._prev_close
        self._prev_close = close
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0

        if self._avg_gain is None or self._avg_loss is None:
            self._gain_sum += gain
            self._loss_sum += loss
            self._count += 1
            if self._count < self._period:
                return None
            self._avg_gain = self._gain_sum / self._period
            self._avg_loss = self._loss_sum / self._period
        else:
            p = self._period
            self._avg_gain = (self._avg_gain * (p - 1) + gain) / p
            self._avg_loss = (self._avg_loss * (p - 1) + loss) / p

        return self.value

    @property
    def value(self) -> float | None:
        if self._avg_gain is None or self._avg_loss is None:
            return None
        if self._avg_loss == 0:
            return 100.0
        rs = self._avg_gain / self._avg_loss
        return 100.0 - 100.0 / (1.0 + rs)


# --- Output points (frozen) ---


class Trend(str, Enum):
    """Hull Suite slope direction."""

    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class RSIPoint:
    time: int
    value: float


@dataclass(frozen=True)
class HullPoint:
    time: int
    hull_value: float
    trend: Trend


@dataclass(frozen=True)
class GuppyPoint:
    """All 12 Guppy EMAs at one candle, short periods first."""

    time: int
    short: tuple[float, ...]
    long: tuple[float, ...]

    @property
    def is_bullish(self) -> bool:
        """True when every short EMA is above every long EMA."""
        return min(self.short) > max(self.long)


# --- Series functions ---


def rsi(candles: Sequence[Candle], period: int = 14) -> list[RSIPoint]:
    """RSI over closes. Output length is ``len(candles) - period``."""
    calc = RSI(period)
    if len(candles) < period + 1:
        return []

    points: list[RSIPoint] = []
    for candle in candles:
        value = calc.update(candle.close)
        if value is not None:
            points.append(RSIPoint(time=candle.time, value=value))
    return points


def wma(values: Sequence[float | None], period: int) -> list[float | None]:
    """WMA aligned to ``values``; None until a full window of defined values."""
    calc = WMA(period)
    result: list[float | None] = []
    for v in values:
        if v is None:
            result.append(None)
            continue
        calc.update(v)
        result.append(calc.value)
    return result


def hma(values: Sequence[float], period: int) -> list[float | None]:
    """Hull Moving Average: WMA(2 * WMA(period // 2) - WMA(period), isqrt(period))."""
    if period < 2:
        raise ValueError(f"Hull period must be >= 2, got {period}")
    half = wma(values, period // 2)
    full = wma(values, period)
    raw: list[float | None] = [
        2 * h - f if h is not None and f is not None else None
        for h, f in zip(half, full)
    ]
    return wma(raw, math.isqrt(period))


def hull_suite(candles: Sequence[Candle], period: int = 55) -> list[HullPoint]:
    """Hull trend line with up/down labels.

    Requires at least ``2 * period`` candles. Indices without a Hull value,
    and the first one that has no predecessor, are left out.
    """
    if period < 2:
        raise ValueError(f"Hull period must be >= 2, got {period}")
    if len(candles) < period * 2:
        return []

    hull = hma([c.close for c in candles], period)
    points: list[HullPoint] = []
    for i in range(1, len(candles)):
        current, previous = hull[i], hull[i - 1]
        if current is None or previous is None:
            continue
        trend = Trend.UP if current >= previous else Trend.DOWN
        points.append(
            HullPoint(time=candles[i].time, hull_value=current, trend=trend),
        )
    return points


def guppy(candles: Sequence[Candle]) -> list[GuppyPoint]:
    """Guppy MMA ribbon: six short and six long EMAs of close.

    Requires at least 60 candles; the first point is at index 59, where the
    60-period EMA gets its seed.
    """
    if len(candles) < GUPPY_MIN_BARS:
        return []

    short = [EMA(p) for p in GUPPY_SHORT_PERIODS]
    long = [EMA(p) for p in GUPPY_LONG_PERIODS]
    points: list[GuppyPoint] = []

    for candle in candles:
        for ema in (*short, *long):
            ema.update(candle.close)

        short_values = [e.value for e in short]
        long_values = [e.value for e in long]
        if any(v is None for v in short_values) or any(v is None for v in long_values):
            continue
        points.append(
            GuppyPoint(
                time=candle.time,
                short=tuple(v for v in short_values if v is not None),
                long=tuple(v for v in long_values if v is not None),
            ),
        )
    return points
