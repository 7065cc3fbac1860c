"""Wire provider adapters into per-source fallback chains from AppConfig."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from chartdesk.config import AppConfig
from chartdesk.market.adapters import (
    BinanceProvider,
    BlockchainInfoHashRate,
    CoinGeckoProvider,
    CryptoCompareProvider,
    YahooProvider,
)
from chartdesk.market.cache import TTLCache
from chartdesk.market.fetcher import MultiSourceCandleFetcher
from chartdesk.market.http import ProviderHttpClient
from chartdesk.market.provider import CandleProvider
from chartdesk.market.rate_limit import RateLimiter
from chartdesk.market.types import DataSource

USER_AGENT = "chartdesk/0.1"

Sleep = Callable[[float], Awaitable[None]]


def create_http_client() -> httpx.AsyncClient:
    """Shared client for every provider."""
    return httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )


def _http(
    name: str,
    base_url: str,
    min_interval: float,
    config: AppConfig,
    client: httpx.AsyncClient,
    sleep: Sleep,
) -> ProviderHttpClient:
    limiter = RateLimiter(name, min_interval, sleep=sleep)
    return ProviderHttpClient(
        name,
        base_url,
        client,
        config.fetch,
        limiter=limiter,
        sleep=sleep,
    )


def build_crypto_providers(
    config: AppConfig,
    client: httpx.AsyncClient,
    cache: TTLCache,
    sleep: Sleep = asyncio.sleep,
) -> list[CandleProvider]:
    """Crypto providers in the configured fallback order."""
    p = config.providers
    factories: dict[str, Callable[[], CandleProvider]] = {
        "cryptocompare": lambda: CryptoCompareProvider(
            _http("cryptocompare", p.cryptocompare_url,
                  p.cryptocompare_min_interval_seconds, config, client, sleep),
            config.fetch,
            sleep=sleep,
        ),
        "binance": lambda: BinanceProvider(
            _http("binance", p.binance_url,
                  p.binance_min_interval_seconds, config, client, sleep),
            config.fetch,
            cache,
        ),
        "coingecko": lambda: CoinGeckoProvider(
            _http("coingecko", p.coingecko_url,
                  p.coingecko_min_interval_seconds, config, client, sleep),
            config.fetch,
            cache,
        ),
    }
    return [factories[name]() for name in p.crypto_chain]


def build_fetcher(
    config: AppConfig,
    client: httpx.AsyncClient,
    cache: TTLCache | None = None,
    sleep: Sleep = asyncio.sleep,
) -> MultiSourceCandleFetcher:
    """MultiSourceCandleFetcher with the crypto and stocks chains."""
    cache = cache if cache is not None else TTLCache(config.fetch.candle_ttl_seconds)
    p = config.providers
    yahoo = YahooProvider(
        _http("yahoo", p.yahoo_url, p.yahoo_min_interval_seconds, config, client, sleep),
    )
    chains: dict[DataSource, list[CandleProvider]] = {
        DataSource.CRYPTO: build_crypto_providers(config, client, cache, sleep),
        DataSource.STOCKS: [yahoo],
    }
    return MultiSourceCandleFetcher(chains, config.fetch, cache)


def build_hash_rate_source(
    config: AppConfig,
    client: httpx.AsyncClient,
    cache: TTLCache | None = None,
    sleep: Sleep = asyncio.sleep,
) -> BlockchainInfoHashRate:
    cache = cache if cache is not None else TTLCache(config.fetch.symbol_ttl_seconds)
    http = _http(
        "blockchain_info",
        config.providers.blockchain_info_url,
        0.0,
        config,
        client,
        sleep,
    )
    return BlockchainInfoHashRate(http, config.fetch, config.mining_cost, cache)
