"""
File Cache - Durable cache tier stored as JSON files.

Each key lives in its own ``fcache.<key>.json`` file inside the cache
directory, so one corrupt entry never takes the others down. Entries do not
expire unless a TTL is given; clean() is the operator reset.
"""

import json
import os
import re
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from src.domain.entities.cache_entry import NO_EXPIRATION, TTL, CacheEntry, expiry_for
from src.domain.ports.cache_port import CachePort
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)

FILE_PREFIX = "fcache."
FILE_SUFFIX = ".json"

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_.-]+")


class FileCache(CachePort):
    """JSON-file cache that survives process restart."""
    
    def __init__(
        self,
        cache_dir: str | Path,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize file cache.
        
        Args:
            cache_dir: Directory for cache files, created if missing
            clock: Time source, replaceable for tests
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock
    
    def _path_for(self, key: str) -> Path:
        safe_key = _UNSAFE_KEY_CHARS.sub("_", key)
        return self.cache_dir / f"{FILE_PREFIX}{safe_key}{FILE_SUFFIX}"
    
    def _load_entry(self, key: str) -> Optional[CacheEntry]:
        """Load an entry from disk; unreadable files count as misses."""
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return CacheEntry.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Could not load cache file", path=str(path), error=str(e))
            return None
    
    def get(self, key: str) -> tuple[Any, bool]:
        entry = self._load_entry(key)
        if entry is None:
            return None, False
        if entry.is_expired(self._clock()):
            logger.debug("Durable cache entry expired", key=key)
            return None, False
        return entry.value, True
    
    def get_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._load_entry(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry
    
    def set(self, key: str, value: Any, ttl: TTL = NO_EXPIRATION) -> None:
        """
        Write an entry atomically (temp file + rename).
        
        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Expiry; durable entries default to never expiring
        """
        now = self._clock()
        entry = CacheEntry(value=value, created_at=now, expires_at=expiry_for(now, ttl))
        path = self._path_for(key)
        
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry.to_dict(), f, default=str)
            os.replace(tmp_name, path)
            logger.debug("Saved cache file", path=str(path))
        except (OSError, TypeError, ValueError) as e:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            logger.error("Could not save cache file", path=str(path), error=str(e))
    
    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()
    
    def clean(self) -> list[Path]:
        """
        Remove every cache file in the cache directory.
        
        Returns:
            Paths that were removed.
        """
        removed = []
        for path in sorted(self.cache_dir.glob(f"{FILE_PREFIX}*")):
            path.unlink()
            removed.append(path)
        logger.info("Durable cache cleaned", path=str(self.cache_dir), removed=len(removed))
        return removed
