"""CandleProvider protocol: abstract interface for market data sources.

All provider adapters (CryptoCompare, Binance, CoinGecko, Yahoo, fake)
must satisfy this protocol. Adapters only translate a (symbol, timeframe)
request into a provider call and the response into candles; retry,
rate limiting, caching and fallback live outside them.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chartdesk.market.types import Candle, SymbolMatch, Timeframe


@runtime_checkable
class CandleProvider(Protocol):
    """Async interface for historical candle data.

    ``name`` identifies the provider in logs, cache keys and errors.
    ``supports_history`` is True when ``fetch_candles_before`` can page
    further back than the initial request.
    """

    name: str
    supports_history: bool

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
    ) -> list[Candle]:
        """Fetch the most recent candles for a symbol.

        Returns:
            Candles ordered by time ascending, deduplicated.

        Raises:
            ProviderUnavailable: HTTP, network or parse failure.
            NoData: The provider answered but had no candles.
        """
        ...

    async def fetch_candles_before(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
    ) -> list[Candle]:
        """Fetch candles strictly older than ``before_time`` (unix seconds).

        An empty list means the provider has no older history.
        """
        ...

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        """Search the provider's symbol universe for autocomplete."""
        ...
