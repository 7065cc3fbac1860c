"""Candle aggregation, deduplication and series merging.

Push-based: call process_bar() with each source bar in time order.
Returns a completed candle when ``period`` bars have been buffered.
Call flush() to emit the trailing partial candle.

Chunking is by position, not by calendar boundary: providers already
return bars aligned to their own granularity, and a coarser timeframe is
built from a whole number of them (e.g. 4 hourly bars per 4h candle).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from chartdesk.market.types import Candle


class CandleAggregator:
    """Aggregates consecutive source bars into ``period``-bar candles."""

    def __init__(self, period: int) -> None:
        if period < 1:
            raise ValueError(f"period must be >= 1, got {period}")
        self.period = period
        self._buffer: list[Candle] = []

    def process_bar(self, bar: Candle) -> Candle | None:
        """Process one source bar. Returns a completed candle or None."""
        if self.period == 1:
            return bar

        self._buffer.append(bar)
        if len(self._buffer) >= self.period:
            candle = self._emit_candle()
            self._buffer = []
            return candle
        return None

    def flush(self) -> Candle | None:
        """Flush any buffered bars as a partial candle."""
        if not self._buffer:
            return None
        candle = self._emit_candle()
        self._buffer = []
        return candle

    @property
    def pending(self) -> int:
        """Number of bars buffered toward the next candle."""
        return len(self._buffer)

    def _emit_candle(self) -> Candle:
        """Build a candle from the current buffer."""
        bars = self._buffer
        return Candle(
            time=bars[0].time,
            open=bars[0].open,
            high=max(b.high for b in bars),
            low=min(b.low for b in bars),
            close=bars[-1].close,
            volume=sum(b.volume for b in bars),
        )


def aggregate(candles: Sequence[Candle], period: int) -> list[Candle]:
    """Re-bucket ``candles`` into chunks of ``period`` bars.

    A trailing chunk shorter than ``period`` is still emitted, so
    ``len(result) == ceil(len(candles) / period)``.
    """
    aggregator = CandleAggregator(period)
    if period == 1:
        return list(candles)

    result: list[Candle] = []
    for bar in candles:
        candle = aggregator.process_bar(bar)
        if candle is not None:
            result.append(candle)
    tail = aggregator.flush()
    if tail is not None:
        result.append(tail)
    return result


def dedupe_candles(candles: Iterable[Candle]) -> list[Candle]:
    """Keep the first candle seen for each timestamp, sorted ascending."""
    seen: set[int] = set()
    unique: list[Candle] = []
    for candle in candles:
        if candle.time in seen:
            continue
        seen.add(candle.time)
        unique.append(candle)
    unique.sort(key=lambda c: c.time)
    return unique


def merge_candles(first: Sequence[Candle], second: Sequence[Candle]) -> list[Candle]:
    """Merge two batches; on shared timestamps ``first`` wins."""
    return dedupe_candles([*first, *second])


def merge_older(series: Sequence[Candle], older: Iterable[Candle]) -> list[Candle]:
    """Prepend candles strictly older than the series head.

    Candles at or after the current head, or already present, are ignored.
    """
    if not series:
        return dedupe_candles(older)
    head = series[0].time
    new = dedupe_candles(c for c in older if c.time < head)
    return [*new, *series]


def merge_live(series: Sequence[Candle], candle: Candle) -> list[Candle]:
    """Apply a live tail update.

    Same timestamp as the last bar replaces it (the bar is still forming);
    a newer timestamp appends; an older one is ignored.
    """
    if not series:
        return [candle]
    last = series[-1]
    if candle.time == last.time:
        return [*series[:-1], candle]
    if candle.time > last.time:
        return [*series, candle]
    return list(series)
