"""
Domain ports - Interface definitions for hexagonal architecture.
"""

from src.domain.ports.cache_port import CachePort
from src.domain.ports.market_data_port import MarketDataPort, PageStreamPort

__all__ = [
    "CachePort",
    "MarketDataPort",
    "PageStreamPort",
]
