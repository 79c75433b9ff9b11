"""
Domain entities - Core business objects.
"""

from src.domain.entities.cache_entry import NO_EXPIRATION, CacheEntry
from src.domain.entities.catalog import CatalogEntry
from src.domain.entities.coin import CoinRecord
from src.domain.entities.market import CoinGraph, GlobalMarketData, MarketGraph

__all__ = [
    "NO_EXPIRATION",
    "CacheEntry",
    "CatalogEntry",
    "CoinRecord",
    "CoinGraph",
    "GlobalMarketData",
    "MarketGraph",
]
