"""CryptoCompareProvider: deep crypto history via the histo* endpoints.

Pages backwards with ``toTs`` in batches of up to 2000 bars, so it is the
provider used for initial loads and for older-history backfill.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from chartdesk.config import FetchConfig
from chartdesk.engine.candle_aggregator import aggregate, dedupe_candles
from chartdesk.market.errors import NoData, ProviderUnavailable
from chartdesk.market.http import ProviderHttpClient
from chartdesk.market.types import Candle, SymbolMatch, Timeframe

log = structlog.get_logger()

QUOTE_CURRENCIES = ("USDT", "USDC", "USD", "EUR", "GBP", "BTC", "ETH")
# Stablecoin quotes are priced against USD on CryptoCompare
_QUOTE_ALIASES = {"USDT": "USD", "USDC": "USD"}


@dataclass(frozen=True)
class _TimeframeSpec:
    endpoint: str
    limit: int
    batches: int
    aggregate: int = 1


_TIMEFRAMES: dict[Timeframe, _TimeframeSpec] = {
    Timeframe.ONE_MINUTE: _TimeframeSpec("histominute", 2000, 1),
    Timeframe.FIVE_MINUTES: _TimeframeSpec("histominute", 2000, 1, 5),
    Timeframe.FIFTEEN_MINUTES: _TimeframeSpec("histominute", 2000, 2, 15),
    Timeframe.THIRTY_MINUTES: _TimeframeSpec("histohour", 2000, 2),
    Timeframe.ONE_HOUR: _TimeframeSpec("histohour", 2000, 4),
    Timeframe.FOUR_HOURS: _TimeframeSpec("histohour", 2000, 4, 4),
    Timeframe.ONE_DAY: _TimeframeSpec("histoday", 2000, 2),
    Timeframe.THREE_DAYS: _TimeframeSpec("histoday", 2000, 3, 3),
    Timeframe.ONE_WEEK: _TimeframeSpec("histoday", 2000, 4, 7),
    Timeframe.ONE_MONTH: _TimeframeSpec("histoday", 2000, 5, 30),
    Timeframe.THREE_MONTHS: _TimeframeSpec("histoday", 2000, 8, 90),
}


def parse_pair(symbol: str) -> tuple[str, str]:
    """Split a ticker like ``BTCUSDT`` or ``ETH/EUR`` into (fsym, tsym)."""
    cleaned = symbol.upper().replace("/", "").replace("-", "")
    for quote in QUOTE_CURRENCIES:
        if cleaned.endswith(quote) and len(cleaned) > len(quote):
            return cleaned[: -len(quote)], _QUOTE_ALIASES.get(quote, quote)
    return cleaned[:-3], cleaned[-3:]


def parse_candles(payload: Any) -> list[Candle]:
    """Translate a histo* response body into candles (zero closes dropped)."""
    if not isinstance(payload, dict):
        raise ProviderUnavailable("cryptocompare", "unexpected response shape")
    if payload.get("Response") == "Error":
        raise ProviderUnavailable(
            "cryptocompare",
            payload.get("Message") or "API error",
        )
    try:
        rows = payload["Data"]["Data"]
        return [
            Candle(
                time=int(row["time"]),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row.get("volumefrom") or 0.0),
            )
            for row in rows
            if float(row["close"]) > 0
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderUnavailable("cryptocompare", f"malformed candles: {e}") from e


class CryptoCompareProvider:
    """CandleProvider backed by min-api.cryptocompare.com."""

    name = "cryptocompare"
    supports_history = True

    def __init__(
        self,
        http: ProviderHttpClient,
        config: FetchConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._http = http
        self._config = config
        self._sleep = sleep

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
    ) -> list[Candle]:
        spec = _TIMEFRAMES[timeframe]
        candles = await self._fetch_batches(symbol, spec, spec.batches, to_ts=None)
        if not candles:
            raise NoData(self.name, f"no candles for {symbol} {timeframe.value}")
        return candles

    async def fetch_candles_before(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
    ) -> list[Candle]:
        spec = _TIMEFRAMES[timeframe]
        candles = await self._fetch_batches(
            symbol,
            spec,
            self._config.history_batches,
            to_ts=before_time - 1,
        )
        return [c for c in candles if c.time < before_time]

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        # CryptoCompare has no search endpoint worth the quota
        return []

    async def _fetch_batches(
        self,
        symbol: str,
        spec: _TimeframeSpec,
        batches: int,
        to_ts: int | None,
    ) -> list[Candle]:
        fsym, tsym = parse_pair(symbol)
        raw: list[Candle] = []

        for i in range(batches):
            params: dict[str, str | int] = {
                "fsym": fsym,
                "tsym": tsym,
                "limit": spec.limit,
            }
            if to_ts is not None:
                params["toTs"] = to_ts
            payload = await self._http.get_json(spec.endpoint, params=params)
            batch = parse_candles(payload)
            if not batch:
                break

            raw = [*batch, *raw]
            to_ts = min(c.time for c in batch) - 1
            log.debug(
                "cryptocompare_batch",
                symbol=symbol,
                batch=i + 1,
                bars=len(batch),
            )
            if i < batches - 1:
                await self._sleep(self._config.batch_delay_seconds)

        return aggregate(dedupe_candles(raw), spec.aggregate)
