"""Bitcoin mining cost bands (Electricity Hash Valuation).

EHV = (TH per BTC) x (kWh per TH) x ($ per kWh) = $ per BTC, where
TH per BTC = hash rate (TH/s) x 86400 / (144 blocks x block reward).
Production cost adds hardware, cooling and staff overhead on top of the
electrical cost through a flat multiplier.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from chartdesk.config import MiningCostConfig
from chartdesk.utils.time import to_unix

BLOCKS_PER_DAY = 144
SECONDS_PER_DAY = 86400
JOULES_PER_KWH = 3_600_000
MIN_SANE_COST = 1.0
MAX_SANE_COST = 1_000_000.0


def _ts(year: int, month: int, day: int) -> int:
    return to_unix(datetime(year, month, day, tzinfo=UTC))


# (activation time, block reward in BTC), oldest first
HALVINGS: tuple[tuple[int, float], ...] = (
    (_ts(2009, 1, 3), 50.0),
    (_ts(2012, 11, 28), 25.0),
    (_ts(2016, 7, 9), 12.5),
    (_ts(2020, 5, 11), 6.25),
    (_ts(2024, 4, 20), 3.125),
)

# Historical estimates (CBECI, miner reports) used when no hash rate is available:
# (date, electrical $/BTC, production $/BTC)
FALLBACK_ESTIMATES: tuple[tuple[tuple[int, int, int], float, float], ...] = (
    ((2019, 1, 1), 3500, 5845),
    ((2019, 6, 1), 5000, 8350),
    ((2019, 12, 1), 6500, 10855),
    ((2020, 5, 11), 8000, 13360),
    ((2020, 8, 1), 9500, 15865),
    ((2020, 12, 1), 12000, 20040),
    ((2021, 1, 1), 14000, 23380),
    ((2021, 4, 1), 18000, 30060),
    ((2021, 7, 1), 12000, 20040),
    ((2021, 11, 1), 22000, 36740),
    ((2022, 1, 1), 24000, 40080),
    ((2022, 6, 1), 18000, 30060),
    ((2022, 12, 1), 16000, 26720),
    ((2023, 1, 1), 18000, 30060),
    ((2023, 6, 1), 24000, 40080),
    ((2023, 12, 1), 32000, 53440),
    ((2024, 4, 20), 54000, 90180),
    ((2024, 6, 1), 56000, 93520),
    ((2024, 9, 1), 52000, 86840),
    ((2024, 12, 1), 55000, 91850),
    ((2025, 1, 1), 54000, 90180),
    ((2025, 6, 1), 58000, 96860),
    ((2026, 1, 1), 62000, 103540),
)


@dataclass(frozen=True)
class HashRatePoint:
    """Network hash rate sample in TH/s."""

    time: int
    hash_rate_ths: float


@dataclass(frozen=True)
class MiningCostPoint:
    time: int
    electrical_cost: float
    production_cost: float


def block_reward_at(ts: int) -> float:
    """Block subsidy in effect at unix time ``ts``."""
    for start, reward in reversed(HALVINGS):
        if ts >= start:
            return reward
    return HALVINGS[0][1]


def cost_from_hash_rate(
    hash_rate_ths: float,
    block_reward: float,
    config: MiningCostConfig,
) -> tuple[float, float]:
    """(electrical, production) cost in $ per BTC."""
    daily_btc = BLOCKS_PER_DAY * block_reward
    th_per_btc = hash_rate_ths * SECONDS_PER_DAY / daily_btc
    kwh_per_th = config.miner_efficiency_j_per_th / JOULES_PER_KWH
    electrical = th_per_btc * kwh_per_th * config.electricity_cost_per_kwh
    return electrical, electrical * config.overhead_multiplier


def production_costs(
    hash_rates: Sequence[HashRatePoint],
    config: MiningCostConfig,
) -> list[MiningCostPoint]:
    """Cost band per hash-rate sample, dropping invalid or implausible points."""
    points: list[MiningCostPoint] = []
    for sample in hash_rates:
        if sample.hash_rate_ths <= 0:
            continue
        electrical, production = cost_from_hash_rate(
            sample.hash_rate_ths,
            block_reward_at(sample.time),
            config,
        )
        if not MIN_SANE_COST <= electrical <= MAX_SANE_COST:
            continue
        points.append(
            MiningCostPoint(
                time=sample.time,
                electrical_cost=round(electrical, 2),
                production_cost=round(production, 2),
            ),
        )
    return points


def fallback_costs() -> list[MiningCostPoint]:
    """Built-in historical estimates."""
    return [
        MiningCostPoint(
            time=_ts(*ymd),
            electrical_cost=float(electrical),
            production_cost=float(production),
        )
        for ymd, electrical, production in FALLBACK_ESTIMATES
    ]


def interpolate_costs(
    points: Sequence[MiningCostPoint],
    times: Sequence[int],
) -> list[MiningCostPoint]:
    """Linearly interpolate the cost bands onto candle times.

    Times outside the known range take the nearest endpoint value.
    """
    if not points:
        return []
    ordered = sorted(points, key=lambda p: p.time)
    keys = [p.time for p in ordered]
    last = len(ordered) - 1
    result: list[MiningCostPoint] = []

    for t in times:
        i = bisect_right(keys, t)
        lower = ordered[max(0, i - 1)]
        upper = ordered[min(last, i)]

        ratio = 0.0
        if upper.time != lower.time:
            ratio = (t - lower.time) / (upper.time - lower.time)
        ratio = max(0.0, min(1.0, ratio))

        result.append(
            MiningCostPoint(
                time=t,
                electrical_cost=lower.electrical_cost
                + (upper.electrical_cost - lower.electrical_cost) * ratio,
                production_cost=lower.production_cost
                + (upper.production_cost - lower.production_cost) * ratio,
            ),
        )
    return result


def is_btc_symbol(symbol: str) -> bool:
    """Cost bands are only meaningful on BTC charts."""
    return "BTC" in symbol.upper()
