"""Visible-range volume profile (volume at price) with POC and Value Area.

The window's price range [min(low), max(high)] is split into fixed,
equal-height rows. Each candle's volume is spread over the rows its
high-low range overlaps, proportionally to the overlap height. A candle
with no range puts all its volume in the row holding its close.

Buy/sell split: a bar closing at or above its open counts as buy volume,
otherwise sell. This is a deterministic proxy, not trade-side attribution.

Recomputed from scratch on every visible-range change; no state is kept
between calls.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from chartdesk.market.types import Candle

DEFAULT_ROWS = 200
VALUE_AREA_PCT = 0.70


@dataclass(frozen=True)
class PriceLevel:
    """One profile row. ``price`` is the row midpoint."""

    price: float
    volume: float
    buy_volume: float
    sell_volume: float


@dataclass(frozen=True)
class VolumeProfile:
    levels: tuple[PriceLevel, ...]
    poc: float
    value_area_high: float
    value_area_low: float
    max_volume: float

    @property
    def total_volume(self) -> float:
        return sum(level.volume for level in self.levels)

    @property
    def is_degenerate(self) -> bool:
        """True for an empty window or a window with zero price range."""
        return not self.levels


EMPTY_PROFILE = VolumeProfile(
    levels=(),
    poc=0.0,
    value_area_high=0.0,
    value_area_low=0.0,
    max_volume=0.0,
)


def volume_profile(
    candles: Sequence[Candle],
    rows: int = DEFAULT_ROWS,
    value_area_pct: float = VALUE_AREA_PCT,
) -> VolumeProfile:
    """Compute the volume profile of a window of candles."""
    if rows < 1:
        raise ValueError(f"rows must be >= 1, got {rows}")
    if not 0 < value_area_pct <= 1:
        raise ValueError(f"value_area_pct must be in (0, 1], got {value_area_pct}")
    if not candles:
        return EMPTY_PROFILE

    high = max(c.high for c in candles)
    low = min(c.low for c in candles)
    price_range = high - low
    if price_range == 0:
        return VolumeProfile(
            levels=(),
            poc=high,
            value_area_high=high,
            value_area_low=low,
            max_volume=0.0,
        )

    row_height = price_range / rows
    volume = [0.0] * rows
    buy = [0.0] * rows
    sell = [0.0] * rows

    def row_bounds(i: int) -> tuple[float, float]:
        row_low = low + i * row_height
        # pin the top edge so float error cannot shave volume off the last row
        row_high = high if i == rows - 1 else row_low + row_height
        return row_low, row_high

    for candle in candles:
        side = buy if candle.is_bullish else sell
        candle_range = candle.range

        if candle_range == 0:
            idx = min(rows - 1, max(0, math.floor((candle.close - low) / row_height)))
            volume[idx] += candle.volume
            side[idx] += candle.volume
            continue

        first = max(0, math.floor((candle.low - low) / row_height) - 1)
        last = min(rows - 1, math.floor((candle.high - low) / row_height) + 1)
        for i in range(first, last + 1):
            row_low, row_high = row_bounds(i)
            overlap = min(candle.high, row_high) - max(candle.low, row_low)
            if overlap <= 0:
                continue
            share = overlap / candle_range * candle.volume
            volume[i] += share
            side[i] += share

    levels = tuple(
        PriceLevel(
            price=low + (i + 0.5) * row_height,
            volume=volume[i],
            buy_volume=buy[i],
            sell_volume=sell[i],
        )
        for i in range(rows)
    )

    poc_index = point_of_control(volume)
    lower, upper = value_area(volume, poc_index, value_area_pct)

    return VolumeProfile(
        levels=levels,
        poc=levels[poc_index].price,
        value_area_high=row_bounds(upper)[1],
        value_area_low=row_bounds(lower)[0],
        max_volume=volume[poc_index],
    )


def point_of_control(volume: Sequence[float]) -> int:
    """Index of the first row holding the maximum volume."""
    poc = 0
    for i, v in enumerate(volume):
        if v > volume[poc]:
            poc = i
    return poc


def value_area(
    volume: Sequence[float],
    poc_index: int,
    pct: float = VALUE_AREA_PCT,
) -> tuple[int, int]:
    """Greedy value area around the POC as inclusive (lower, upper) row indices.

    Each step adds whichever neighbour of the current span (the row above
    or the row below) has more volume, the upper one on ties, until the
    span holds ``pct`` of total volume or both ends are exhausted.
    """
    top = len(volume) - 1
    target = sum(volume) * pct
    accumulated = volume[poc_index]
    lower = upper = poc_index

    while accumulated < target and (upper < top or lower > 0):
        upper_volume = volume[upper + 1] if upper < top else 0.0
        lower_volume = volume[lower - 1] if lower > 0 else 0.0

        if upper < top and upper_volume >= lower_volume:
            upper += 1
            accumulated += upper_volume
        else:
            lower -= 1
            accumulated += lower_volume

    return lower, upper


def visible_window(
    candles: Sequence[Candle],
    from_index: float,
    to_index: float,
) -> list[Candle]:
    """Candles inside a possibly fractional, out-of-bounds logical range."""
    if not candles:
        return []
    start = max(0, math.floor(from_index))
    end = min(len(candles) - 1, math.ceil(to_index))
    if end < start:
        return []
    return list(candles[start : end + 1])


def visible_range_profile(
    candles: Sequence[Candle],
    from_index: float,
    to_index: float,
    rows: int = DEFAULT_ROWS,
    value_area_pct: float = VALUE_AREA_PCT,
) -> VolumeProfile | None:
    """Profile of the pane's visible range.

    None when fewer than two candles are visible or none carries volume,
    in which case the overlay is hidden.
    """
    window = visible_window(candles, from_index, to_index)
    if len(window) < 2:
        return None
    if sum(c.volume for c in window) == 0:
        return None
    return volume_profile(window, rows=rows, value_area_pct=value_area_pct)
