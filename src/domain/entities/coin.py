"""
Coin entity - Canonical normalized market record for one coin.
"""

from dataclasses import asdict, dataclass


@dataclass
class CoinRecord:
    """
    Normalized market data for one coin in one currency.
    
    Produced fresh on every page normalization. A newer record for the same
    ``id`` replaces the older one wholesale.
    """
    
    id: str
    name: str
    symbol: str
    rank: int
    currency: str
    price: float = 0.0
    available_supply: float = 0.0  # Circulating supply
    total_supply: float = 0.0
    market_cap: float = 0.0
    volume_24h: float = 0.0
    percent_change_1h: float = 0.0
    percent_change_24h: float = 0.0
    percent_change_7d: float = 0.0
    percent_change_30d: float = 0.0
    last_updated: str = ""  # Unix seconds as string
    
    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return asdict(self)
    
    @classmethod
    def from_dict(cls, data: dict) -> "CoinRecord":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            symbol=data.get("symbol", ""),
            rank=int(data.get("rank") or 0),
            currency=data.get("currency", ""),
            price=float(data.get("price") or 0.0),
            available_supply=float(data.get("available_supply") or 0.0),
            total_supply=float(data.get("total_supply") or 0.0),
            market_cap=float(data.get("market_cap") or 0.0),
            volume_24h=float(data.get("volume_24h") or 0.0),
            percent_change_1h=float(data.get("percent_change_1h") or 0.0),
            percent_change_24h=float(data.get("percent_change_24h") or 0.0),
            percent_change_7d=float(data.get("percent_change_7d") or 0.0),
            percent_change_30d=float(data.get("percent_change_30d") or 0.0),
            last_updated=str(data.get("last_updated") or ""),
        )
