"""BlockchainInfoHashRate: network hash rate for the BTC mining cost bands."""

from __future__ import annotations

from typing import Any

import structlog

from chartdesk.config import FetchConfig, MiningCostConfig
from chartdesk.engine.mining_cost import (
    HashRatePoint,
    MiningCostPoint,
    fallback_costs,
    production_costs,
)
from chartdesk.market.cache import TTLCache
from chartdesk.market.errors import MarketDataError, ProviderUnavailable
from chartdesk.market.http import ProviderHttpClient

log = structlog.get_logger()


def parse_hash_rate(payload: Any) -> list[HashRatePoint]:
    """Translate a /charts/hash-rate body (TH/s samples) into points."""
    if not isinstance(payload, dict):
        raise ProviderUnavailable("blockchain_info", "unexpected response shape")
    try:
        return [
            HashRatePoint(time=int(v["x"]), hash_rate_ths=float(v["y"]))
            for v in payload.get("values") or []
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderUnavailable("blockchain_info", f"malformed values: {e}") from e


class BlockchainInfoHashRate:
    """Hash rate history from api.blockchain.info, turned into cost bands."""

    name = "blockchain_info"

    def __init__(
        self,
        http: ProviderHttpClient,
        fetch_config: FetchConfig,
        cost_config: MiningCostConfig,
        cache: TTLCache,
    ) -> None:
        self._http = http
        self._fetch_config = fetch_config
        self._cost_config = cost_config
        self._cache = cache

    async def fetch_hash_rate(self) -> list[HashRatePoint]:
        payload = await self._http.get_json(
            "charts/hash-rate",
            params={"timespan": "all", "format": "json"},
        )
        return parse_hash_rate(payload)

    async def production_costs(self) -> list[MiningCostPoint]:
        """Cost bands from live hash rate, or built-in estimates on failure."""
        key = (self.name, "production_costs")
        cached = self._cache.get(key)
        if cached is not None:
            costs: list[MiningCostPoint] = cached
            return costs

        try:
            costs = production_costs(await self.fetch_hash_rate(), self._cost_config)
        except MarketDataError as e:
            log.warning("hash_rate_unavailable", error=str(e))
            return fallback_costs()

        if not costs:
            log.warning("hash_rate_empty")
            return fallback_costs()

        self._cache.set(key, costs, ttl=self._fetch_config.symbol_ttl_seconds)
        return costs
