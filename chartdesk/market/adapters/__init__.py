"""Provider adapters: translate provider responses into candles."""

from chartdesk.market.adapters.binance import BinanceProvider
from chartdesk.market.adapters.blockchain_info import BlockchainInfoHashRate
from chartdesk.market.adapters.coingecko import CoinGeckoProvider
from chartdesk.market.adapters.cryptocompare import CryptoCompareProvider
from chartdesk.market.adapters.yahoo import YahooProvider

__all__ = [
    "BinanceProvider",
    "BlockchainInfoHashRate",
    "CoinGeckoProvider",
    "CryptoCompareProvider",
    "YahooProvider",
]
