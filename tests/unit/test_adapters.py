"""Tests for provider adapters against canned responses (httpx.MockTransport)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from chartdesk.config import FetchConfig, MiningCostConfig
from chartdesk.engine.mining_cost import FALLBACK_ESTIMATES
from chartdesk.market.adapters.binance import (
    BinanceProvider,
    parse_klines,
    parse_trading_pairs,
    to_binance_symbol,
)
from chartdesk.market.adapters.blockchain_info import (
    BlockchainInfoHashRate,
    parse_hash_rate,
)
from chartdesk.market.adapters.coingecko import (
    CoinGeckoProvider,
    base_asset,
    match_volume,
)
from chartdesk.market.adapters.cryptocompare import (
    CryptoCompareProvider,
    parse_candles,
    parse_pair,
)
from chartdesk.market.adapters.yahoo import YahooProvider, parse_chart
from chartdesk.market.cache import TTLCache
from chartdesk.market.errors import NoData, ProviderUnavailable
from chartdesk.market.fake import FakeCandleProvider
from chartdesk.market.fetcher import MultiSourceCandleFetcher
from chartdesk.market.http import ProviderHttpClient
from chartdesk.market.provider import CandleProvider
from chartdesk.market.types import DataSource, SymbolMatch, Timeframe
from tests.factories import HOUR, RecordingSleep

Route = Callable[[httpx.Request], Any]


class _Router:
    """MockTransport handler mapping URL path suffixes to JSON bodies."""

    def __init__(self, routes: dict[str, Route | Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, body in self.routes.items():
            if request.url.path.endswith(suffix):
                if isinstance(body, httpx.Response):
                    return body
                payload = body(request) if callable(body) else body
                return httpx.Response(200, json=payload)
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _http(name: str, router: _Router, sleep: RecordingSleep) -> ProviderHttpClient:
    return ProviderHttpClient(
        name,
        "https://example.test/api",
        httpx.AsyncClient(transport=httpx.MockTransport(router)),
        FetchConfig(),
        sleep=sleep,
    )


def _cc_rows(start: int, count: int, step: int = HOUR) -> list[dict[str, float]]:
    return [
        {
            "time": start + i * step,
            "open": 100.0 + i,
            "high": 102.0 + i,
            "low": 99.0 + i,
            "close": 101.0 + i,
            "volumefrom": 10.0,
            "volumeto": 1000.0,
        }
        for i in range(count)
    ]


# --- CryptoCompare ---


class TestCryptoCompareParsing:
    @pytest.mark.parametrize(
        ("symbol", "pair"),
        [
            ("BTCUSDT", ("BTC", "USD")),
            ("ETH/EUR", ("ETH", "EUR")),
            ("SOL-USD", ("SOL", "USD")),
            ("ETHBTC", ("ETH", "BTC")),
            ("DOGEUSDC", ("DOGE", "USD")),
        ],
    )
    def test_parse_pair(self, symbol: str, pair: tuple[str, str]) -> None:
        assert parse_pair(symbol) == pair

    def test_zero_closes_dropped(self) -> None:
        rows = _cc_rows(0, 3)
        rows[1]["close"] = 0.0
        candles = parse_candles({"Response": "Success", "Data": {"Data": rows}})
        assert [c.time for c in candles] == [0, 2 * HOUR]
        assert candles[0].volume == 10.0

    def test_api_error(self) -> None:
        with pytest.raises(ProviderUnavailable, match="market does not exist"):
            parse_candles({"Response": "Error", "Message": "market does not exist"})


class TestCryptoCompareProvider:
    async def test_fetch_pages_backwards(self, fetch_config: FetchConfig) -> None:
        sleep = RecordingSleep()
        seen_to_ts: list[str | None] = []

        def histohour(request: httpx.Request) -> dict[str, Any]:
            to_ts = request.url.params.get("toTs")
            seen_to_ts.append(to_ts)
            end = 100 * HOUR if to_ts is None else int(to_ts) + 1
            return {"Response": "Success", "Data": {"Data": _cc_rows(end - 5 * HOUR, 5)}}

        router = _Router({"/histohour": histohour})
        provider = CryptoCompareProvider(
            _http("cryptocompare", router, sleep), fetch_config, sleep=sleep,
        )
        candles = await provider.fetch_candles("BTCUSD", Timeframe.ONE_HOUR)

        # 1h fetches four batches of 5 contiguous bars
        assert len(candles) == 20
        assert candles == sorted(candles, key=lambda c: c.time)
        assert seen_to_ts[0] is None
        assert seen_to_ts[1] == str(95 * HOUR - 1)
        assert router.requests[0].url.params["fsym"] == "BTC"

    async def test_four_hour_aggregated(self, fetch_config: FetchConfig) -> None:
        sleep = RecordingSleep()
        calls = {"n": 0}

        def histohour(request: httpx.Request) -> dict[str, Any]:
            calls["n"] += 1
            rows = _cc_rows(0, 8) if calls["n"] == 1 else []
            return {"Response": "Success", "Data": {"Data": rows}}

        router = _Router({"/histohour": histohour})
        provider = CryptoCompareProvider(
            _http("cryptocompare", router, sleep), fetch_config, sleep=sleep,
        )
        candles = await provider.fetch_candles("BTCUSD", Timeframe.FOUR_HOURS)
        assert len(candles) == 2
        assert candles[0].volume == 40.0
        assert candles[0].high == 105.0

    async def test_empty_is_no_data(self, fetch_config: FetchConfig) -> None:
        sleep = RecordingSleep()
        router = _Router({"/histoday": {"Response": "Success", "Data": {"Data": []}}})
        provider = CryptoCompareProvider(
            _http("cryptocompare", router, sleep), fetch_config, sleep=sleep,
        )
        with pytest.raises(NoData):
            await provider.fetch_candles("XYZUSD", Timeframe.ONE_DAY)

    async def test_fetch_before_filters_at_or_after(self, fetch_config: FetchConfig) -> None:
        sleep = RecordingSleep()
        before = 50 * HOUR

        def histohour(request: httpx.Request) -> dict[str, Any]:
            # a provider that also returns the boundary bar
            to_ts = int(request.url.params["toTs"])
            return {"Response": "Success", "Data": {"Data": _cc_rows(to_ts - 2 * HOUR + 1, 3)}}

        router = _Router({"/histohour": histohour})
        provider = CryptoCompareProvider(
            _http("cryptocompare", router, sleep), fetch_config, sleep=sleep,
        )
        older = await provider.fetch_candles_before("BTCUSD", Timeframe.ONE_HOUR, before)
        assert older
        assert all(c.time < before for c in older)
        assert router.requests[0].url.params["toTs"] == str(before - 1)
        assert len(router.requests) == fetch_config.history_batches


# --- Binance ---


def _kline(open_time_ms: int, close: float = 101.0) -> list[Any]:
    return [open_time_ms, "100.0", "102.0", "99.0", str(close), "12.5", open_time_ms + 1, "0"]


class TestBinance:
    @pytest.mark.parametrize(
        ("symbol", "expected"),
        [("BTCUSD", "BTCUSDT"), ("eth", "ETHUSDT"), ("SOL-USDT", "SOLUSDT"), ("ETHBTC", "ETHBTC")],
    )
    def test_symbol_mapping(self, symbol: str, expected: str) -> None:
        assert to_binance_symbol(symbol) == expected

    def test_parse_klines(self) -> None:
        (candle,) = parse_klines([_kline(3_600_000)])
        assert candle.time == 3600
        assert candle.close == 101.0
        assert candle.volume == 12.5

    def test_parse_rejects_non_list(self) -> None:
        with pytest.raises(ProviderUnavailable):
            parse_klines({"code": -1121, "msg": "Invalid symbol."})

    async def test_three_months_built_from_monthly(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        sleep = RecordingSleep()
        router = _Router({"/klines": [_kline(i * 1000) for i in range(7)]})
        provider = BinanceProvider(_http("binance", router, sleep), fetch_config, cache)
        candles = await provider.fetch_candles("BTCUSD", Timeframe.THREE_MONTHS)
        assert len(candles) == 3
        assert router.requests[0].url.params["interval"] == "1M"
        assert router.requests[0].url.params["symbol"] == "BTCUSDT"

    async def test_search_uses_cached_exchange_info(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        sleep = RecordingSleep()
        info = {
            "symbols": [
                {"symbol": "BTCUSDT", "baseAsset": "BTC", "quoteAsset": "USDT", "status": "TRADING"},
                {"symbol": "ETHBTC", "baseAsset": "ETH", "quoteAsset": "BTC", "status": "TRADING"},
                {"symbol": "LUNAUSDT", "baseAsset": "LUNA", "quoteAsset": "USDT", "status": "BREAK"},
                {"symbol": "ETHUSDT", "baseAsset": "ETH", "quoteAsset": "USDT", "status": "TRADING"},
            ],
        }
        router = _Router({"/exchangeInfo": info})
        provider = BinanceProvider(_http("binance", router, sleep), fetch_config, cache)

        matches = await provider.search_symbols("eth")
        assert [m.symbol for m in matches] == ["ETHUSD"]
        await provider.search_symbols("btc")
        assert len(router.requests) == 1

    def test_parse_trading_pairs_rejects_non_dict(self) -> None:
        with pytest.raises(ProviderUnavailable):
            parse_trading_pairs(["BTCUSDT"])

    async def test_malformed_exchange_info_is_provider_error(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        info = {
            "symbols": [
                {"baseAsset": "BTC", "quoteAsset": "USDT", "status": "TRADING"},
            ],
        }
        router = _Router({"/exchangeInfo": info})
        provider = BinanceProvider(
            _http("binance", router, RecordingSleep()), fetch_config, cache,
        )
        with pytest.raises(ProviderUnavailable, match="malformed exchangeInfo"):
            await provider.search_symbols("BTC")

    async def test_malformed_exchange_info_skipped_in_merged_search(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        router = _Router({"/exchangeInfo": {"symbols": ["BTCUSDT"]}})
        binance = BinanceProvider(
            _http("binance", router, RecordingSleep()), fetch_config, cache,
        )
        backup = FakeCandleProvider(
            name="backup",
            symbols=[SymbolMatch(symbol="BTCUSD", name="Bitcoin")],
        )
        fetcher = MultiSourceCandleFetcher({DataSource.CRYPTO: [binance, backup]}, fetch_config)

        matches = await fetcher.search_symbols("BTC")
        assert matches == [SymbolMatch(symbol="BTCUSD", name="Bitcoin")]


# --- CoinGecko ---


class TestCoinGecko:
    def test_base_asset(self) -> None:
        assert base_asset("BTC-USD") == "BTC"
        assert base_asset("ethusdt") == "ETH"
        assert base_asset("PEPE") == "PEPE"

    def test_match_volume_nearest_within_window(self) -> None:
        volumes = {600: 5.0, 7200: 9.0}
        assert match_volume(volumes, 660_000) == 5.0
        assert match_volume(volumes, 100_000_000) == 0.0

    async def test_fetch_joins_volumes(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        sleep = RecordingSleep()
        ohlc = [[i * 3_600_000, 100.0, 101.0, 99.0, 100.5] for i in range(12)]
        chart = {"total_volumes": [[i * 3_600_000 + 60_000, 7.0] for i in range(12)]}
        router = _Router({"/coins/bitcoin/ohlc": ohlc, "/coins/bitcoin/market_chart": chart})
        provider = CoinGeckoProvider(_http("coingecko", router, sleep), fetch_config, cache)

        candles = await provider.fetch_candles("BTCUSD", Timeframe.ONE_HOUR)
        assert len(candles) == 12
        assert all(c.volume == 7.0 for c in candles)

    async def test_volume_failure_is_not_fatal(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        sleep = RecordingSleep()
        ohlc = [[i * 3_600_000, 100.0, 101.0, 99.0, 100.5] for i in range(3)]
        router = _Router({
            "/coins/bitcoin/ohlc": ohlc,
            "/coins/bitcoin/market_chart": httpx.Response(500),
        })
        provider = CoinGeckoProvider(_http("coingecko", router, sleep), fetch_config, cache)
        candles = await provider.fetch_candles("BTCUSD", Timeframe.ONE_HOUR)
        assert [c.volume for c in candles] == [0.0, 0.0, 0.0]

    async def test_malformed_volumes_leave_volume_at_zero(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        ohlc = [[i * 3_600_000, 100.0, 101.0, 99.0, 100.5] for i in range(3)]
        router = _Router({
            "/coins/bitcoin/ohlc": ohlc,
            "/coins/bitcoin/market_chart": {"total_volumes": [[0, None]]},
        })
        provider = CoinGeckoProvider(
            _http("coingecko", router, RecordingSleep()), fetch_config, cache,
        )
        candles = await provider.fetch_candles("BTCUSD", Timeframe.ONE_HOUR)
        assert [c.volume for c in candles] == [0.0, 0.0, 0.0]

    async def test_malformed_search_entries_ignored(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        search = {
            "coins": [
                "pepe",
                {"id": "pepe-old", "symbol": None},
                {"id": "pepe", "symbol": "pepe"},
            ],
        }
        router = _Router({"/search": search})
        provider = CoinGeckoProvider(
            _http("coingecko", router, RecordingSleep()), fetch_config, cache,
        )
        assert await provider.resolve_id("PEPE") == "pepe"
        (match,) = await provider.search_symbols("pepe")
        assert match.name == "pepe"

    async def test_resolve_id_via_search_is_cached(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        sleep = RecordingSleep()
        search = {
            "coins": [
                {"id": "pepe", "symbol": "pepe", "name": "Pepe"},
                {"id": "pepe-2", "symbol": "pepe2", "name": "Pepe 2"},
            ],
        }
        router = _Router({"/search": search})
        provider = CoinGeckoProvider(_http("coingecko", router, sleep), fetch_config, cache)

        assert await provider.resolve_id("PEPEUSD") == "pepe"
        assert await provider.resolve_id("PEPE") == "pepe"
        assert len(router.requests) == 1

    async def test_known_id_skips_search(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        router = _Router({})
        provider = CoinGeckoProvider(
            _http("coingecko", router, RecordingSleep()), fetch_config, cache,
        )
        assert await provider.resolve_id("ETHUSDT") == "ethereum"
        assert router.requests == []

    async def test_search_symbols(self, fetch_config: FetchConfig, cache: TTLCache) -> None:
        router = _Router({"/search": {"coins": [{"id": "solana", "symbol": "sol", "name": "Solana"}]}})
        provider = CoinGeckoProvider(
            _http("coingecko", router, RecordingSleep()), fetch_config, cache,
        )
        assert await provider.search_symbols("s") == []
        (match,) = await provider.search_symbols("sol")
        assert match.symbol == "SOLUSD"
        assert match.name == "Solana"

    async def test_empty_ohlc_is_no_data(self, fetch_config: FetchConfig, cache: TTLCache) -> None:
        router = _Router({"/coins/bitcoin/ohlc": []})
        provider = CoinGeckoProvider(
            _http("coingecko", router, RecordingSleep()), fetch_config, cache,
        )
        with pytest.raises(NoData):
            await provider.fetch_candles("BTC", Timeframe.ONE_DAY)


# --- Yahoo ---


def _chart(timestamps: list[int], closes: list[float | None]) -> dict[str, Any]:
    return {
        "chart": {
            "result": [
                {
                    "timestamp": timestamps,
                    "indicators": {
                        "quote": [
                            {
                                "open": closes,
                                "high": [c + 1 if c is not None else None for c in closes],
                                "low": [c - 1 if c is not None else None for c in closes],
                                "close": closes,
                                "volume": [1000] * len(closes),
                            },
                        ],
                    },
                },
            ],
            "error": None,
        },
    }


class TestYahoo:
    def test_null_bars_skipped(self) -> None:
        candles = parse_chart(_chart([0, 60, 120], [10.0, None, 12.0]))
        assert [c.time for c in candles] == [0, 120]
        assert candles[1].high == 13.0

    def test_missing_result_is_no_data(self) -> None:
        with pytest.raises(NoData):
            parse_chart({"chart": {"result": None, "error": {"code": "Not Found"}}})

    async def test_four_hours_from_hourly(self) -> None:
        router = _Router({"/v8/finance/chart/AAPL": _chart([i * HOUR for i in range(8)], [1.0] * 8)})
        provider = YahooProvider(_http("yahoo", router, RecordingSleep()))
        candles = await provider.fetch_candles("AAPL", Timeframe.FOUR_HOURS)
        assert len(candles) == 2
        assert router.requests[0].url.params["interval"] == "1h"

    async def test_search_filters_quote_types(self) -> None:
        body = {
            "quotes": [
                {"symbol": "AAPL", "shortname": "Apple Inc.", "quoteType": "EQUITY"},
                {"symbol": "AAPL240621C", "quoteType": "OPTION"},
                {"symbol": "SPY", "longname": "SPDR S&P 500", "quoteType": "ETF"},
            ],
        }
        router = _Router({"/v1/finance/search": body})
        provider = YahooProvider(_http("yahoo", router, RecordingSleep()))
        matches = await provider.search_symbols("a")
        assert [(m.symbol, m.name) for m in matches] == [
            ("AAPL", "Apple Inc."),
            ("SPY", "SPDR S&P 500"),
        ]


# --- Blockchain.info hash rate ---


class TestBlockchainInfo:
    def test_parse(self) -> None:
        (point,) = parse_hash_rate({"values": [{"x": 1700000000, "y": 450e6}]})
        assert point.time == 1700000000
        assert point.hash_rate_ths == 450e6

    def test_parse_malformed(self) -> None:
        with pytest.raises(ProviderUnavailable):
            parse_hash_rate({"values": [{"x": 1}]})

    async def test_costs_cached(self, fetch_config: FetchConfig, cache: TTLCache) -> None:
        router = _Router({"/charts/hash-rate": {"values": [{"x": 1735689600, "y": 600e6}]}})
        source = BlockchainInfoHashRate(
            _http("blockchain_info", router, RecordingSleep()),
            fetch_config,
            MiningCostConfig(),
            cache,
        )
        (point,) = await source.production_costs()
        assert point.electrical_cost == pytest.approx(35200.0)
        await source.production_costs()
        assert len(router.requests) == 1

    async def test_failure_uses_fallback(self, fetch_config: FetchConfig, cache: TTLCache) -> None:
        router = _Router({"/charts/hash-rate": httpx.Response(503)})
        source = BlockchainInfoHashRate(
            _http("blockchain_info", router, RecordingSleep()),
            fetch_config,
            MiningCostConfig(),
            cache,
        )
        assert len(await source.production_costs()) == len(FALLBACK_ESTIMATES)


# --- Protocol conformance ---


class TestProtocolConformance:
    def test_adapters_satisfy_candle_provider(
        self, fetch_config: FetchConfig, cache: TTLCache,
    ) -> None:
        http = _http("x", _Router({}), RecordingSleep())
        providers = [
            CryptoCompareProvider(http, fetch_config),
            BinanceProvider(http, fetch_config, cache),
            CoinGeckoProvider(http, fetch_config, cache),
            YahooProvider(http),
        ]
        for provider in providers:
            assert isinstance(provider, CandleProvider)
        assert [p.supports_history for p in providers] == [True, False, False, False]
