"""Engine layer: candle aggregation, indicators and chart overlays."""

from chartdesk.engine.candle_aggregator import (
    CandleAggregator,
    aggregate,
    dedupe_candles,
    merge_live,
    merge_older,
)
from chartdesk.engine.indicators import (
    SMA,
    GuppyPoint,
    HullPoint,
    RSIPoint,
    Trend,
    guppy,
    hull_suite,
    rsi,
)
from chartdesk.engine.key_levels import KeyLevel, countdown_timers, key_levels
from chartdesk.engine.volume_profile import (
    PriceLevel,
    VolumeProfile,
    visible_range_profile,
    volume_profile,
)

__all__ = [
    "SMA",
    "CandleAggregator",
    "GuppyPoint",
    "HullPoint",
    "KeyLevel",
    "PriceLevel",
    "RSIPoint",
    "Trend",
    "VolumeProfile",
    "aggregate",
    "countdown_timers",
    "dedupe_candles",
    "guppy",
    "hull_suite",
    "key_levels",
    "merge_live",
    "merge_older",
    "rsi",
    "visible_range_profile",
    "volume_profile",
]
