"""
Cache Port - Interface shared by the volatile and durable cache tiers.
"""

from abc import ABC, abstractmethod
from typing import Any

from src.domain.entities.cache_entry import TTL


class CachePort(ABC):
    """
    Port interface for a key/value cache tier.
    
    Implementations:
        - MemoryCache: process-local, short TTL
        - FileCache: JSON files on disk, survives restart
    """
    
    @abstractmethod
    def get(self, key: str) -> tuple[Any, bool]:
        """
        Look up a key.
        
        Args:
            key: Opaque cache key (e.g., "coingecko_catalog")
        
        Returns:
            (value, found). Expired entries are reported as not found.
        """
        ...
    
    @abstractmethod
    def set(self, key: str, value: Any, ttl: TTL) -> None:
        """
        Store a value.
        
        Args:
            key: Cache key
            value: Value to store
            ttl: Seconds, timedelta, or NO_EXPIRATION
        """
        ...
    
    @abstractmethod
    def delete(self, key: str) -> None:
        ...
