"""
Catalog entity - Provider-wide coin listing used for identifier resolution.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogEntry:
    """One coin from the provider catalog."""
    
    id: str  # Canonical provider ID (e.g., "bitcoin")
    name: str  # Display name (e.g., "Bitcoin")
    symbol: str  # Ticker symbol (e.g., "btc")
    
    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {"id": self.id, "name": self.name, "symbol": self.symbol}
    
    @classmethod
    def from_dict(cls, data: dict) -> "CatalogEntry":
        """Create from a provider or cache dictionary."""
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            symbol=str(data.get("symbol") or ""),
        )
