"""FakeCandleProvider: in-memory candle source for testing.

Lightweight implementation of CandleProvider for unit testing the
fetcher, the feed and the CLI without any network access.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from chartdesk.market.errors import NoData
from chartdesk.market.types import Candle, SymbolMatch, Timeframe


class FakeCandleProvider:
    """In-memory CandleProvider for testing.

    Supply canned candles (or an exception to raise) at construction.
    Every call is recorded in ``calls`` as ``(method, symbol, ...)``.
    Set ``gate`` to an asyncio.Event to hold ``fetch_candles`` until the
    test releases it.
    """

    def __init__(
        self,
        name: str = "fake",
        candles: Sequence[Candle] | None = None,
        error: Exception | None = None,
        older: Sequence[Candle] | None = None,
        older_error: Exception | None = None,
        symbols: Sequence[SymbolMatch] | None = None,
        supports_history: bool = False,
    ) -> None:
        self.name = name
        self.supports_history = supports_history
        self._candles: list[Candle] = list(candles) if candles is not None else []
        self._error = error
        self._older: list[Candle] = list(older) if older is not None else []
        self._older_error = older_error
        self._symbols: list[SymbolMatch] = list(symbols) if symbols else []
        self.calls: list[tuple[object, ...]] = []
        self.gate: asyncio.Event | None = None

    def set_candles(self, candles: Sequence[Candle]) -> None:
        """Replace the canned candles returned by ``fetch_candles``."""
        self._candles = list(candles)
        self._error = None

    def set_error(self, error: Exception | None) -> None:
        """Make ``fetch_candles`` raise ``error`` (None to clear)."""
        self._error = error

    def set_older(self, candles: Sequence[Candle]) -> None:
        """Replace the history served by ``fetch_candles_before``."""
        self._older = list(candles)
        self._older_error = None

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
    ) -> list[Candle]:
        self.calls.append(("fetch_candles", symbol, timeframe))
        if self.gate is not None:
            await self.gate.wait()
        if self._error is not None:
            raise self._error
        if not self._candles:
            raise NoData(self.name)
        return list(self._candles)

    async def fetch_candles_before(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
    ) -> list[Candle]:
        self.calls.append(("fetch_candles_before", symbol, timeframe, before_time))
        if self._older_error is not None:
            raise self._older_error
        return [c for c in self._older if c.time < before_time]

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        self.calls.append(("search_symbols", query))
        needle = query.upper()
        return [s for s in self._symbols if needle in s.symbol.upper()]

    def call_count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)
