"""
Cache entry entity - Envelope shared by both cache tiers.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Union

# TTL marker for entries that never expire
NO_EXPIRATION = -1

TTL = Union[int, float, timedelta]


def expiry_for(created_at: datetime, ttl: TTL) -> Optional[datetime]:
    """
    Compute the expiry time for a TTL.
    
    Args:
        created_at: When the entry is written
        ttl: Seconds, a timedelta, or NO_EXPIRATION
    
    Returns:
        Expiry datetime, or None when the entry never expires.
    """
    if isinstance(ttl, timedelta):
        return created_at + ttl
    if ttl == NO_EXPIRATION:
        return None
    return created_at + timedelta(seconds=ttl)


@dataclass
class CacheEntry:
    """A cached value with its creation time and expiry policy."""
    
    value: Any
    created_at: datetime
    expires_at: Optional[datetime] = None
    
    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at
    
    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "value": self.value,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
    
    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        """Create from dictionary."""
        expires_at = data.get("expires_at")
        return cls(
            value=data.get("value"),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )
