"""CoinGeckoProvider: last-resort crypto source that can find almost any coin.

Symbols are resolved to CoinGecko ids (known mappings, then the cache,
then the search endpoint). OHLC comes from /coins/{id}/ohlc, which has no
volume, so volumes are joined from /market_chart by nearest minute. A
failed volume lookup leaves volume at zero rather than failing the fetch.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from chartdesk.config import FetchConfig
from chartdesk.engine.candle_aggregator import aggregate, dedupe_candles
from chartdesk.market.cache import TTLCache
from chartdesk.market.errors import MarketDataError, NoData, ProviderUnavailable
from chartdesk.market.http import ProviderHttpClient
from chartdesk.market.types import Candle, SymbolMatch, Timeframe

log = structlog.get_logger()

SEARCH_LIMIT = 10
VOLUME_MATCH_MINUTES = 30
VOLUME_MAX_ATTEMPTS = 2

KNOWN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "BNB": "binancecoin",
    "LTC": "litecoin",
    "ATOM": "cosmos",
    "SHIB": "shiba-inu",
    "FET": "fetch-ai",
    "GRT": "the-graph",
    "STX": "blockstack",
    "IMX": "immutable-x",
}

# (days parameter, aggregation factor applied to the returned bars)
_DAYS: dict[Timeframe, tuple[str, int]] = {
    Timeframe.ONE_MINUTE: ("1", 1),
    Timeframe.FIVE_MINUTES: ("1", 1),
    Timeframe.FIFTEEN_MINUTES: ("7", 1),
    Timeframe.THIRTY_MINUTES: ("14", 1),
    Timeframe.ONE_HOUR: ("30", 1),
    Timeframe.FOUR_HOURS: ("90", 1),
    Timeframe.ONE_DAY: ("365", 1),
    Timeframe.THREE_DAYS: ("730", 3),
    Timeframe.ONE_WEEK: ("1095", 1),
    Timeframe.ONE_MONTH: ("max", 30),
    Timeframe.THREE_MONTHS: ("max", 90),
}

_QUOTE_SUFFIX = re.compile(r"[/-]?(USD|USDT|USDC)$", re.IGNORECASE)


def base_asset(symbol: str) -> str:
    """``BTC-USD`` / ``ethusdt`` -> ``BTC`` / ``ETH``."""
    return _QUOTE_SUFFIX.sub("", symbol.upper())


def _minute_key(ms: float) -> int:
    return int(ms // 60000) * 60


def match_volume(volumes: dict[int, float], ts_ms: float) -> float:
    """Volume sample nearest to ``ts_ms`` within 30 minutes, else 0."""
    key = _minute_key(ts_ms)
    for offset in range(VOLUME_MATCH_MINUTES + 1):
        for candidate in (key + offset * 60, key - offset * 60):
            if candidate in volumes:
                return volumes[candidate]
    return 0.0


class CoinGeckoProvider:
    """CandleProvider backed by api.coingecko.com (free tier, throttled)."""

    name = "coingecko"
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
        coin_id = await self.resolve_id(symbol)
        days, factor = _DAYS[timeframe]

        payload = await self._http.get_json(
            f"coins/{coin_id}/ohlc",
            params={"vs_currency": "usd", "days": days},
        )
        if not isinstance(payload, list) or not payload:
            raise NoData(self.name, f"no OHLC for {coin_id}")

        volumes = await self._volumes(coin_id, days)
        try:
            candles = [
                Candle(
                    time=int(row[0]) // 1000,
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=match_volume(volumes, row[0]),
                )
                for row in payload
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailable(self.name, f"malformed OHLC: {e}") from e

        return aggregate(dedupe_candles(candles), factor)

    async def fetch_candles_before(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
    ) -> list[Candle]:
        return []

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        if len(query) < 2:
            return []
        coins = await self._search(query)
        return [
            SymbolMatch(
                symbol=f"{coin['symbol'].upper()}USD",
                name=coin.get("name") or coin["id"],
            )
            for coin in coins[:SEARCH_LIMIT]
        ]

    async def resolve_id(self, symbol: str) -> str:
        """CoinGecko coin id for a ticker; falls back to the lowercase base asset."""
        base = base_asset(symbol)
        if base in KNOWN_IDS:
            return KNOWN_IDS[base]

        key = (self.name, "coin_id", base)
        cached = self._cache.get(key)
        if cached is not None:
            coin_id: str = cached
            return coin_id

        try:
            coins = await self._search(base)
        except MarketDataError as e:
            log.info("coingecko_search_failed", symbol=base, error=str(e))
            return base.lower()
        exact = next((c for c in coins if c["symbol"].upper() == base), None)
        match = exact or (coins[0] if coins else None)
        if match is None:
            return base.lower()

        coin_id = match["id"]
        self._cache.set(key, coin_id, ttl=self._config.symbol_ttl_seconds)
        log.debug("coingecko_id_resolved", symbol=base, coin_id=coin_id)
        return coin_id

    async def _search(self, query: str) -> list[dict[str, Any]]:
        key = (self.name, "search", query.lower())
        cached = self._cache.get(key)
        if cached is not None:
            hits: list[dict[str, Any]] = cached
            return hits

        payload = await self._http.get_json("search", params={"query": query.lower()})
        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.name, "unexpected search response shape")
        coins: list[dict[str, Any]] = [
            c for c in payload.get("coins") or []
            if isinstance(c, dict)
            and isinstance(c.get("id"), str)
            and isinstance(c.get("symbol"), str)
        ]
        self._cache.set(key, coins, ttl=self._config.symbol_ttl_seconds)

        # remember the first id the search revealed for each ticker
        for coin in coins:
            id_key = (self.name, "coin_id", coin["symbol"].upper())
            if id_key not in self._cache:
                self._cache.set(id_key, coin["id"], ttl=self._config.symbol_ttl_seconds)
        return coins

    async def _volumes(self, coin_id: str, days: str) -> dict[int, float]:
        key = (self.name, "volumes", coin_id, days)
        cached = self._cache.get(key)
        if cached is not None:
            volumes: dict[int, float] = cached
            return volumes

        try:
            payload = await self._http.get_json(
                f"coins/{coin_id}/market_chart",
                params={"vs_currency": "usd", "days": days},
                max_attempts=VOLUME_MAX_ATTEMPTS,
            )
        except MarketDataError as e:
            log.info("coingecko_volumes_unavailable", coin_id=coin_id, error=str(e))
            return {}

        if not isinstance(payload, dict):
            return {}
        try:
            volumes = {
                _minute_key(ts): float(vol)
                for ts, vol in payload.get("total_volumes") or []
            }
        except (TypeError, ValueError) as e:
            log.info("coingecko_volumes_malformed", coin_id=coin_id, error=str(e))
            return {}
        self._cache.set(key, volumes, ttl=self._config.candle_ttl_seconds)
        return volumes
