"""
Market-wide entities - Global market stats and price graphs.
"""

from dataclasses import dataclass, field


@dataclass
class GlobalMarketData:
    """Aggregate market statistics in one currency."""
    
    total_market_cap: float = 0.0
    total_volume_24h: float = 0.0
    bitcoin_dominance: float = 0.0  # Percent of total market cap
    active_currencies: int = 0
    active_assets: int = 0
    active_markets: int = 0
    
    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "total_market_cap": self.total_market_cap,
            "total_volume_24h": self.total_volume_24h,
            "bitcoin_dominance": self.bitcoin_dominance,
            "active_currencies": self.active_currencies,
            "active_assets": self.active_assets,
            "active_markets": self.active_markets,
        }
    
    @classmethod
    def from_dict(cls, data: dict) -> "GlobalMarketData":
        """Create from dictionary."""
        return cls(
            total_market_cap=float(data.get("total_market_cap", 0.0)),
            total_volume_24h=float(data.get("total_volume_24h", 0.0)),
            bitcoin_dominance=float(data.get("bitcoin_dominance", 0.0)),
            active_currencies=int(data.get("active_currencies", 0)),
            active_assets=int(data.get("active_assets", 0)),
            active_markets=int(data.get("active_markets", 0)),
        )


@dataclass
class CoinGraph:
    """Time series for one coin, each point is [timestamp_ms, value]."""
    
    price: list[list[float]] = field(default_factory=list)
    price_btc: list[list[float]] = field(default_factory=list)
    market_cap: list[list[float]] = field(default_factory=list)
    volume: list[list[float]] = field(default_factory=list)


@dataclass
class MarketGraph:
    """Global market series, each point is [timestamp_ms, value]."""
    
    market_cap: list[list[float]] = field(default_factory=list)
    volume: list[list[float]] = field(default_factory=list)
