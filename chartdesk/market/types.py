"""Market data domain types shared across fetching and indicator layers.

Frozen dataclasses for value objects. Prices and volumes are plain floats:
every consumer downstream is a charting or indicator computation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Timeframe(str, Enum):
    """Chart timeframes a pane can request."""

    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    FOUR_HOURS = "4h"
    ONE_DAY = "1d"
    THREE_DAYS = "3d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"


class DataSource(str, Enum):
    """Which provider chain serves a pane.

    CRYPTO walks several exchanges/aggregators; STOCKS uses Yahoo Finance.
    """

    CRYPTO = "crypto"
    STOCKS = "stocks"


# --- Value Objects (frozen) ---


@dataclass(frozen=True)
class Candle:
    """OHLCV bar keyed by its open time in unix seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def is_bullish(self) -> bool:
        """True when the bar closed at or above its open."""
        return self.close >= self.open

    @property
    def range(self) -> float:
        return self.high - self.low


@dataclass(frozen=True)
class SymbolMatch:
    """Autocomplete result from a provider's symbol search."""

    symbol: str
    name: str
