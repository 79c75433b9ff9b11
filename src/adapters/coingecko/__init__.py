"""
CoinGecko API adapter package.
"""

from src.adapters.coingecko.client import (
    CoinGeckoAPIError,
    CoinGeckoClient,
    NotFoundError,
    PingFailedError,
    ProviderConnectionError,
)
from src.adapters.coingecko.market_data_adapter import CoinGeckoMarketDataAdapter
from src.adapters.coingecko.page_stream import PageStream

__all__ = [
    "CoinGeckoAPIError",
    "CoinGeckoClient",
    "CoinGeckoMarketDataAdapter",
    "NotFoundError",
    "PageStream",
    "PingFailedError",
    "ProviderConnectionError",
]
