"""
Memory Cache - Volatile, process-local cache tier with per-entry TTL.
"""

import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

from src.domain.entities.cache_entry import TTL, CacheEntry, expiry_for
from src.domain.ports.cache_port import CachePort
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)


class MemoryCache(CachePort):
    """
    In-memory cache guarded by a lock.
    
    Used to avoid repeated provider calls inside one refresh cycle and to
    hold ephemeral per-key values. Contents are lost on restart.
    """
    
    def __init__(
        self,
        default_ttl: TTL = timedelta(minutes=1),
        cleanup_interval: TTL = timedelta(minutes=2),
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize memory cache.
        
        Args:
            default_ttl: TTL used when set() is called with ttl=None
            cleanup_interval: Minimum time between sweeps of expired entries
            clock: Time source, replaceable for tests
        """
        self.default_ttl = default_ttl
        self._cleanup_interval = (
            cleanup_interval
            if isinstance(cleanup_interval, timedelta)
            else timedelta(seconds=cleanup_interval)
        )
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()
    
    def get(self, key: str) -> tuple[Any, bool]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if entry.is_expired(now):
                del self._entries[key]
                return None, False
            return entry.value, True
    
    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry, including its timestamps, if unexpired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                return None
            return entry
    
    def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> None:
        now = self._clock()
        entry = CacheEntry(
            value=value,
            created_at=now,
            expires_at=expiry_for(now, self.default_ttl if ttl is None else ttl),
        )
        with self._lock:
            self._entries[key] = entry
            if now - self._last_cleanup >= self._cleanup_interval:
                self._delete_expired(now)
    
    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
    
    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
    
    def _delete_expired(self, now: datetime) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._last_cleanup = now
        if expired:
            logger.debug("Evicted expired cache entries", count=len(expired))
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
