"""MultiSourceCandleFetcher: ranked provider fallback per data source.

Each provider in a source's chain is tried in order. A provider succeeds
only with at least ``min_bars`` candles; fewer (or NoData) is a soft
failure and the next provider is tried. Hard errors (ProviderUnavailable,
RateLimited) are remembered and the last one is raised once the chain is
exhausted; with none recorded the symbol is reported as not found.

When a RequestToken is passed it is checked after every provider await,
so a superseded request stops as soon as it resumes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

from chartdesk.config import FetchConfig
from chartdesk.engine.candle_aggregator import dedupe_candles
from chartdesk.market.cache import TTLCache
from chartdesk.market.errors import (
    MarketDataError,
    NoData,
    ProviderUnavailable,
    SymbolNotFound,
)
from chartdesk.market.provider import CandleProvider
from chartdesk.market.types import Candle, DataSource, SymbolMatch, Timeframe

if TYPE_CHECKING:
    from chartdesk.market.feed import RequestToken

log = structlog.get_logger()


class MultiSourceCandleFetcher:
    """Fetch candles from the first provider of a chain that has enough data."""

    def __init__(
        self,
        chains: Mapping[DataSource, Sequence[CandleProvider]],
        config: FetchConfig | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self._chains = {source: list(chain) for source, chain in chains.items()}
        self._config = config or FetchConfig()
        self._cache = cache if cache is not None else TTLCache(
            default_ttl=self._config.candle_ttl_seconds,
        )

    def providers(self, source: DataSource) -> list[CandleProvider]:
        """Providers for ``source`` in priority order."""
        return list(self._chains.get(source, []))

    async def fetch(
        self,
        symbol: str,
        timeframe: Timeframe,
        source: DataSource = DataSource.CRYPTO,
        token: RequestToken | None = None,
    ) -> list[Candle]:
        """Fetch the most recent candles for a symbol.

        Raises:
            ProviderUnavailable: Last hard error once every provider failed.
            SymbolNotFound: Every provider failed softly.
            StaleRequestError: ``token`` was superseded while waiting.
        """
        last_error: ProviderUnavailable | None = None

        for provider in self.providers(source):
            key = (provider.name, "candles", symbol, timeframe.value)
            cached = self._cache.get(key)
            if cached is not None:
                log.debug(
                    "candle_cache_hit",
                    provider=provider.name,
                    symbol=symbol,
                    timeframe=timeframe.value,
                )
                candles: list[Candle] = cached
                return list(candles)

            log.debug(
                "provider_attempt",
                provider=provider.name,
                symbol=symbol,
                timeframe=timeframe.value,
            )
            try:
                candles = await provider.fetch_candles(symbol, timeframe)
            except NoData as e:
                candles = []
                log.info(
                    "provider_no_data",
                    provider=provider.name,
                    symbol=symbol,
                    reason=e.message,
                )
            except ProviderUnavailable as e:
                if token is not None:
                    token.ensure_current()
                last_error = e
                log.warning(
                    "provider_failed",
                    provider=provider.name,
                    symbol=symbol,
                    status_code=e.status_code,
                    error=str(e),
                )
                continue

            if token is not None:
                token.ensure_current()

            if len(candles) < self._config.min_bars:
                log.info(
                    "provider_insufficient_bars",
                    provider=provider.name,
                    symbol=symbol,
                    bars=len(candles),
                    min_bars=self._config.min_bars,
                )
                continue

            self._cache.set(key, candles, ttl=self._config.candle_ttl_seconds)
            log.info(
                "candles_fetched",
                provider=provider.name,
                symbol=symbol,
                timeframe=timeframe.value,
                bars=len(candles),
            )
            return list(candles)

        if last_error is not None:
            log.error("all_providers_failed", symbol=symbol, error=str(last_error))
            raise last_error
        log.warning("symbol_not_found", symbol=symbol, source=source.value)
        raise SymbolNotFound(symbol)

    async def fetch_older(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
        known_times: Iterable[int] = (),
        source: DataSource = DataSource.CRYPTO,
        token: RequestToken | None = None,
    ) -> list[Candle]:
        """Fetch candles strictly older than ``before_time``.

        Returns only genuinely new candles, ascending. An empty list means
        no provider has older history.

        Raises:
            MarketDataError: Last error once every history provider failed.
            StaleRequestError: ``token`` was superseded while waiting.
        """
        known = set(known_times)
        last_error: MarketDataError | None = None

        for provider in self.providers(source):
            if not provider.supports_history:
                continue
            try:
                older = await provider.fetch_candles_before(
                    symbol, timeframe, before_time,
                )
            except MarketDataError as e:
                if token is not None:
                    token.ensure_current()
                last_error = e
                log.warning(
                    "history_provider_failed",
                    provider=provider.name,
                    symbol=symbol,
                    error=str(e),
                )
                continue

            if token is not None:
                token.ensure_current()

            fresh = dedupe_candles(
                c for c in sorted(older, key=lambda c: c.time)
                if c.time < before_time and c.time not in known
            )
            log.info(
                "history_fetched",
                provider=provider.name,
                symbol=symbol,
                before_time=before_time,
                bars=len(fresh),
            )
            return fresh

        if last_error is not None:
            raise last_error
        return []

    async def search_symbols(
        self,
        query: str,
        source: DataSource = DataSource.CRYPTO,
    ) -> list[SymbolMatch]:
        """Merged search across the chain; first provider wins per symbol."""
        key = ("search", source.value, query.lower())
        cached = self._cache.get(key)
        if cached is not None:
            hits: list[SymbolMatch] = cached
            return list(hits)

        seen: dict[str, SymbolMatch] = {}
        for provider in self.providers(source):
            try:
                matches = await provider.search_symbols(query)
            except MarketDataError as e:
                log.warning(
                    "symbol_search_failed",
                    provider=provider.name,
                    query=query,
                    error=str(e),
                )
                continue
            for match in matches:
                seen.setdefault(match.symbol, match)

        results = list(seen.values())
        self._cache.set(key, results, ttl=self._config.symbol_ttl_seconds)
        return results
