"""Cache adapters."""

from src.adapters.cache.file_cache import FileCache
from src.adapters.cache.memory_cache import MemoryCache
from src.adapters.cache.tiered_cache import TieredCache, cache_key

__all__ = [
    "FileCache",
    "MemoryCache",
    "TieredCache",
    "cache_key",
]
