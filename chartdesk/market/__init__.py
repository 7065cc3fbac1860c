"""Market data layer.

Re-exports the leaf types, protocol and errors for convenient imports:
    from chartdesk.market import Candle, CandleProvider, MarketDataError

The fetcher, feed and adapters are imported from their own modules.
"""

from chartdesk.market.cache import TTLCache
from chartdesk.market.errors import (
    MarketDataError,
    NoData,
    ProviderUnavailable,
    RateLimited,
    StaleRequestError,
    SymbolNotFound,
)
from chartdesk.market.provider import CandleProvider
from chartdesk.market.types import Candle, DataSource, SymbolMatch, Timeframe

__all__ = [
    "Candle",
    "CandleProvider",
    "DataSource",
    "MarketDataError",
    "NoData",
    "ProviderUnavailable",
    "RateLimited",
    "StaleRequestError",
    "SymbolMatch",
    "SymbolNotFound",
    "TTLCache",
    "Timeframe",
]
