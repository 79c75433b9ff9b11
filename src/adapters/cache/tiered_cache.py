"""
Tiered Cache - Volatile tier in front of an optional durable tier.
"""

from typing import Any, Optional

from src.adapters.cache.file_cache import FileCache
from src.adapters.cache.memory_cache import MemoryCache
from src.domain.entities.cache_entry import NO_EXPIRATION, TTL
from src.domain.ports.cache_port import CachePort
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)


def cache_key(provider: str, name: str) -> str:
    """Build a lower-cased "<provider>_<name>" cache key."""
    return f"{provider}_{name}".lower()


class TieredCache(CachePort):
    """
    Two-tier cache.
    
    Lookups try the volatile tier first; when it has no live entry they
    fall back to the durable tier. The volatile tier is authoritative
    whenever both hold the key. Nothing here evicts on fetch failure:
    callers only write after a successful fetch.
    """
    
    def __init__(self, volatile: MemoryCache, durable: Optional[FileCache] = None):
        """
        Initialize tiered cache.
        
        Args:
            volatile: In-memory tier
            durable: On-disk tier, or None when disk caching is disabled
        """
        self.volatile = volatile
        self.durable = durable
    
    def get(self, key: str) -> tuple[Any, bool]:
        value, found = self.volatile.get(key)
        if found:
            return value, True
        if self.durable is None:
            return None, False
        return self.durable.get(key)
    
    def get_durable(self, key: str) -> tuple[Any, bool]:
        """Read the durable tier only."""
        if self.durable is None:
            return None, False
        return self.durable.get(key)
    
    def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> None:
        """Write the volatile tier only."""
        self.volatile.set(key, value, ttl)
    
    def persist(self, key: str, value: Any, ttl: TTL = NO_EXPIRATION) -> None:
        """Write the durable tier only."""
        if self.durable is not None:
            self.durable.set(key, value, ttl)
    
    def store(
        self,
        key: str,
        value: Any,
        ttl: Optional[TTL] = None,
        durable_value: Any = None,
    ) -> None:
        """
        Write both tiers.
        
        Args:
            key: Cache key
            value: Value for the volatile tier
            ttl: Volatile TTL (default tier TTL if None)
            durable_value: JSON-serializable form for disk; defaults to value
        """
        self.set(key, value, ttl)
        self.persist(key, value if durable_value is None else durable_value)
    
    def delete(self, key: str) -> None:
        self.volatile.delete(key)
        if self.durable is not None:
            self.durable.delete(key)
    
    def clean(self) -> int:
        """Drop everything from both tiers; returns durable files removed."""
        self.volatile.clear()
        if self.durable is None:
            return 0
        return len(self.durable.clean())
