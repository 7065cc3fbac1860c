"""YahooProvider: equities, ETFs and indices from Yahoo Finance chart API."""

from __future__ import annotations

from typing import Any

from chartdesk.engine.candle_aggregator import aggregate, dedupe_candles
from chartdesk.market.errors import NoData, ProviderUnavailable
from chartdesk.market.http import ProviderHttpClient
from chartdesk.market.types import Candle, SymbolMatch, Timeframe

SEARCH_QUOTE_TYPES = frozenset({"EQUITY", "ETF"})

# (interval, range, aggregation factor)
_INTERVALS: dict[Timeframe, tuple[str, str, int]] = {
    Timeframe.ONE_MINUTE: ("1m", "7d", 1),
    Timeframe.FIVE_MINUTES: ("5m", "60d", 1),
    Timeframe.FIFTEEN_MINUTES: ("15m", "60d", 1),
    Timeframe.THIRTY_MINUTES: ("30m", "60d", 1),
    Timeframe.ONE_HOUR: ("1h", "2y", 1),
    Timeframe.FOUR_HOURS: ("1h", "2y", 4),
    Timeframe.ONE_DAY: ("1d", "5y", 1),
    Timeframe.THREE_DAYS: ("1d", "5y", 3),
    Timeframe.ONE_WEEK: ("1wk", "max", 1),
    Timeframe.ONE_MONTH: ("1mo", "max", 1),
    Timeframe.THREE_MONTHS: ("1mo", "max", 3),
}


def parse_chart(payload: Any) -> list[Candle]:
    """Translate a v8 chart body into candles, skipping bars with null prices."""
    try:
        result = (payload.get("chart", {}).get("result") or [None])[0]
    except (AttributeError, IndexError, TypeError) as e:
        raise ProviderUnavailable("yahoo", f"unexpected response shape: {e}") from e
    if not result:
        raise NoData("yahoo", "no chart result")

    timestamps = result.get("timestamp") or []
    quote = ((result.get("indicators") or {}).get("quote") or [{}])[0]
    opens = quote.get("open") or []
    highs = quote.get("high") or []
    lows = quote.get("low") or []
    closes = quote.get("close") or []
    volumes = quote.get("volume") or []

    candles: list[Candle] = []
    for i, ts in enumerate(timestamps):
        try:
            o, h, lo, c = opens[i], highs[i], lows[i], closes[i]
        except IndexError:
            break
        if o is None or h is None or lo is None or c is None:
            continue
        v = volumes[i] if i < len(volumes) else None
        candles.append(
            Candle(
                time=int(ts),
                open=float(o),
                high=float(h),
                low=float(lo),
                close=float(c),
                volume=float(v or 0.0),
            ),
        )
    return candles


class YahooProvider:
    """CandleProvider backed by query1.finance.yahoo.com."""

    name = "yahoo"
    supports_history = False

    def __init__(self, http: ProviderHttpClient) -> None:
        self._http = http

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: Timeframe,
    ) -> list[Candle]:
        interval, range_, factor = _INTERVALS[timeframe]
        payload = await self._http.get_json(
            f"v8/finance/chart/{symbol}",
            params={"interval": interval, "range": range_},
        )
        candles = dedupe_candles(parse_chart(payload))
        if not candles:
            raise NoData(self.name, f"no candles for {symbol} {timeframe.value}")
        return aggregate(candles, factor)

    async def fetch_candles_before(
        self,
        symbol: str,
        timeframe: Timeframe,
        before_time: int,
    ) -> list[Candle]:
        return []

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        payload = await self._http.get_json(
            "v1/finance/search",
            params={"q": query, "quotesCount": 10, "newsCount": 0},
        )
        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.name, "unexpected search response shape")
        return [
            SymbolMatch(
                symbol=q["symbol"],
                name=q.get("shortname") or q.get("longname") or q["symbol"],
            )
            for q in payload.get("quotes", [])
            if q.get("quoteType") in SEARCH_QUOTE_TYPES and "symbol" in q
        ]
