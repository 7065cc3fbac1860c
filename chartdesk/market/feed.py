"""CandleFeed: one chart pane's candle series and its fetch state.

Every load starts a new request generation. Results (and errors) of a
generation that has been superseded are dropped without touching the
series or the state, so rapid symbol/timeframe switches never show the
wrong chart.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from chartdesk.engine.candle_aggregator import merge_live, merge_older
from chartdesk.market.errors import MarketDataError, StaleRequestError
from chartdesk.market.fetcher import MultiSourceCandleFetcher
from chartdesk.market.types import Candle, DataSource, Timeframe
from chartdesk.utils.logging import bind_load_context

log = structlog.get_logger()


@dataclass
class FetchState:
    """UI-facing fetch flags for one pane."""

    loading: bool = False
    loading_more: bool = False
    error: str | None = None
    has_more_history: bool = True


class RequestVersion:
    """Monotonic generation counter for one feed."""

    def __init__(self) -> None:
        self.current = 0

    def begin(self) -> RequestToken:
        """Start a new generation, superseding every outstanding token."""
        self.current += 1
        return RequestToken(self, self.current)


@dataclass(frozen=True)
class RequestToken:
    """Handle on one generation; stale once a newer one begins."""

    version: RequestVersion = field(repr=False)
    generation: int

    def is_current(self) -> bool:
        return self.generation == self.version.current

    def ensure_current(self) -> None:
        if not self.is_current():
            raise StaleRequestError(
                f"request {self.generation} superseded by {self.version.current}"
            )


class CandleFeed:
    """Owns the candle series of a single pane.

    Usage:
        feed = CandleFeed(fetcher)
        await feed.load("BTCUSD", Timeframe.ONE_HOUR)
        await feed.load_more_history()
        feed.apply_live(candle)
    """

    def __init__(self, fetcher: MultiSourceCandleFetcher) -> None:
        self._fetcher = fetcher
        self._version = RequestVersion()
        self.candles: list[Candle] = []
        self.state = FetchState()
        self.symbol: str | None = None
        self.timeframe: Timeframe | None = None
        self.source = DataSource.CRYPTO

    @property
    def generation(self) -> int:
        return self._version.current

    async def load(
        self,
        symbol: str,
        timeframe: Timeframe,
        source: DataSource = DataSource.CRYPTO,
    ) -> bool:
        """Replace the series with a fresh fetch.

        Returns True if this call's result was applied, False if a newer
        load superseded it.
        """
        token = self._version.begin()
        bind_load_context(symbol, timeframe.value, source.value)
        self.symbol = symbol
        self.timeframe = timeframe
        self.source = source
        self.state = FetchState(loading=True)
        log.info(
            "feed_load_started",
            symbol=symbol,
            timeframe=timeframe.value,
            source=source.value,
            generation=token.generation,
        )

        try:
            candles = await self._fetcher.fetch(symbol, timeframe, source, token=token)
            token.ensure_current()
        except StaleRequestError:
            log.debug("stale_result_dropped", symbol=symbol, generation=token.generation)
            return False
        except MarketDataError as e:
            if not token.is_current():
                log.debug("stale_error_dropped", symbol=symbol, generation=token.generation)
                return False
            self.candles = []
            self.state = FetchState(error=str(e))
            log.warning("feed_load_failed", symbol=symbol, error=str(e))
            return True

        self.candles = candles
        self.state = FetchState()
        log.info("feed_load_complete", symbol=symbol, bars=len(candles))
        return True

    async def load_more_history(self) -> int:
        """Prepend older candles; returns how many were added.

        No-op while a load or a history load is running, before the first
        load, or once the providers have reported that no older history
        exists. Older candles are only merged into the series they were
        requested for.
        """
        if (
            self.state.loading
            or self.state.loading_more
            or not self.state.has_more_history
            or not self.candles
            or self.symbol is None
            or self.timeframe is None
        ):
            return 0

        token = RequestToken(self._version, self._version.current)
        requested = (self.symbol, self.timeframe, self.candles[0].time)
        self.state.loading_more = True
        try:
            older = await self._fetcher.fetch_older(
                self.symbol,
                self.timeframe,
                requested[2],
                known_times={c.time for c in self.candles},
                source=self.source,
                token=token,
            )
            token.ensure_current()
        except StaleRequestError:
            log.debug("stale_history_dropped", generation=token.generation)
            return 0
        except MarketDataError as e:
            if token.is_current():
                self.state.loading_more = False
            log.warning("history_load_failed", symbol=self.symbol, error=str(e))
            return 0

        self.state.loading_more = False
        if self._series_key() != requested:
            log.debug("mismatched_history_dropped", symbol=requested[0])
            return 0
        if not older:
            self.state.has_more_history = False
            log.info("history_exhausted", symbol=self.symbol)
            return 0

        before = len(self.candles)
        self.candles = merge_older(self.candles, older)
        return len(self.candles) - before

    def _series_key(self) -> tuple[str | None, Timeframe | None, int | None]:
        head = self.candles[0].time if self.candles else None
        return (self.symbol, self.timeframe, head)

    def apply_live(self, candle: Candle) -> None:
        """Merge a live tail update into the series."""
        self.candles = merge_live(self.candles, candle)
