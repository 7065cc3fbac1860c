"""BinanceProvider: recent klines for every USDT pair on Binance spot."""

from __future__ import annotations

from typing import Any

import structlog

from chartdesk.config import FetchConfig
from chartdesk.engine.candle_aggregator import aggregate, dedupe_candles
from chartdesk.market.cache import TTLCache
from chartdesk.market.errors import NoData, ProviderUnavailable
from chartdesk.market.http import ProviderHttpClient
from chartdesk.market.types import Candle, SymbolMatch, Timeframe

log = structlog.get_logger()

KLINE_LIMIT = 1000
SEARCH_LIMIT = 10

# Binance has no 3-month interval; 3M is built from monthly klines
_INTERVALS: dict[Timeframe, tuple[str, int]] = {
    Timeframe.ONE_MINUTE: ("1m", 1),
    Timeframe.FIVE_MINUTES: ("5m", 1),
    Timeframe.FIFTEEN_MINUTES: ("15m", 1),
    Timeframe.THIRTY_MINUTES: ("30m", 1),
    Timeframe.ONE_HOUR: ("1h", 1),
    Timeframe.FOUR_HOURS: ("4h", 1),
    Timeframe.ONE_DAY: ("1d", 1),
    Timeframe.THREE_DAYS: ("3d", 1),
    Timeframe.ONE_WEEK: ("1w", 1),
    Timeframe.ONE_MONTH: ("1M", 1),
    Timeframe.THREE_MONTHS: ("1M", 3),
}

_QUOTE_SUFFIXES = ("USDT", "BUSD", "BTC", "ETH")


def to_binance_symbol(symbol: str) -> str:
    """``BTCUSD`` -> ``BTCUSDT``; a bare base asset gets a USDT quote."""
    cleaned = symbol.upper().replace("/", "").replace("-", "")
    if cleaned.endswith("USD"):
        return cleaned + "T"
    if not cleaned.endswith(_QUOTE_SUFFIXES):
        return cleaned + "USDT"
    return cleaned


def parse_klines(payload: Any) -> list[Candle]:
    """Translate a /klines array-of-arrays body into candles."""
    if not isinstance(payload, list):
        raise ProviderUnavailable("binance", "unexpected response shape")
    try:
        return [
            Candle(
                time=int(row[0]) // 1000,
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
            for row in payload
        ]
    except (IndexError, TypeError, ValueError) as e:
        raise ProviderUnavailable("binance", f"malformed klines: {e}") from e


def parse_trading_pairs(payload: Any) -> list[SymbolMatch]:
    """USDT pairs currently trading, from an /exchangeInfo body."""
    if not isinstance(payload, dict):
        raise ProviderUnavailable("binance", "unexpected exchangeInfo shape")
    try:
        return [
            SymbolMatch(
                symbol=s["symbol"].replace("USDT", "USD"),
                name=s["baseAsset"],
            )
            for s in payload.get("symbols") or []
            if s.get("status") == "TRADING" and s.get("quoteAsset") == "USDT"
        ]
    except (AttributeError, KeyError, TypeError) as e:
        raise ProviderUnavailable("binance", f"malformed exchangeInfo: {e}") from e


class BinanceProvider:
    """CandleProvider backed by api.binance.com (no older-history paging)."""

    name = "binance"
    supports_history = False

    def __init__(
        self,
        http: ProviderHttpClient,
        config: FetchConfig,
        cache: TTLCache,
    ) -> None:
        self._http = http
        self._config = config
        self._cache = cache

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
    ) -> list[Candle]:
        interval, factor = _INTERVALS[timeframe]
        payload = await self._http.get_json(
            "klines",
            params={
                "symbol": to_binance_symbol(symbol),
                "interval": interval,
                "limit": KLINE_LIMIT,
            },
        )
        candles = dedupe_candles(parse_klines(payload))
        if not candles:
            raise NoData(self.name, f"no klines for {symbol} {timeframe.value}")
        return aggregate(candles, factor)

    async def fetch_candles_before(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
    ) -> list[Candle]:
        return []

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        """Filter the cached USDT pair list locally; Binance has no search API."""
        needle = query.upper()
        return [s for s in await self._trading_pairs() if needle in s.symbol][
            :SEARCH_LIMIT
        ]

    async def _trading_pairs(self) -> list[SymbolMatch]:
        key = (self.name, "exchange_info")
        cached = self._cache.get(key)
        if cached is not None:
            pairs: list[SymbolMatch] = cached
            return pairs

        payload = await self._http.get_json("exchangeInfo")
        pairs = parse_trading_pairs(payload)
        self._cache.set(key, pairs, ttl=self._config.symbol_ttl_seconds)
        log.debug("binance_pairs_loaded", count=len(pairs))
        return pairs
