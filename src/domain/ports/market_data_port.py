"""
Market Data Port - Interface for fetching coin market data.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Optional

from src.domain.entities.catalog import CatalogEntry
from src.domain.entities.coin import CoinRecord
from src.domain.entities.market import CoinGraph, GlobalMarketData, MarketGraph


class PageStreamPort(ABC):
    """
    Finite, non-restartable stream of CoinRecord batches, one per page.
    
    Iteration ends silently when the provider is exhausted, the page ceiling
    is reached or a page fails. ``error`` holds the failure cause, if any.
    """
    
    @abstractmethod
    def __aiter__(self) -> AsyncIterator[list[CoinRecord]]:
        ...
    
    @property
    @abstractmethod
    def pages_emitted(self) -> int:
        ...
    
    @property
    @abstractmethod
    def error(self) -> Optional[BaseException]:
        ...
    
    @abstractmethod
    async def aclose(self) -> None:
        """Abandon the stream; the producer stops after its in-flight page."""
        ...
    
    async def __aenter__(self) -> "PageStreamPort":
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


class MarketDataPort(ABC):
    """
    Port interface for market data operations.
    
    Implementations:
        - CoinGeckoMarketDataAdapter: Fetches data from CoinGecko API v3
    """
    
    @abstractmethod
    async def ping(self) -> None:
        """
        Check connectivity to the provider.
        
        Raises:
            PingFailedError: If the provider cannot be reached.
        """
        ...
    
    @abstractmethod
    async def get_catalog(self) -> list[CatalogEntry]:
        """
        Fetch the full provider coin catalog.
        
        Returns:
            CatalogEntry list in provider order.
        """
        ...
    
    @abstractmethod
    def load_catalog(self, catalog: list[CatalogEntry]) -> None:
        """Rebuild identifier resolution from a catalog."""
        ...
    
    @abstractmethod
    def resolve(self, name: str) -> str:
        """
        Map a name, symbol or slug to the provider's canonical ID.
        
        Never fails; unknown input resolves to its slug.
        """
        ...
    
    @abstractmethod
    def fetch_all(self, currency: str) -> PageStreamPort:
        """
        Start fetching every ranked market page in the background.
        
        Args:
            currency: Quote currency, any case; empty means USD
        
        Returns:
            Stream of normalized page batches.
        """
        ...
    
    @abstractmethod
    async def fetch_one(self, currency: str, identifiers: list[str]) -> list[CoinRecord]:
        """
        Fetch one page filtered to the given identifiers.
        
        Args:
            currency: Quote currency
            identifiers: Names, symbols or IDs; each is resolved first
        
        Returns:
            Normalized records in market cap order.
        """
        ...
    
    @abstractmethod
    async def get_coin_data(self, name: str, currency: str) -> Optional[CoinRecord]:
        """
        Fetch a single coin.
        
        Returns:
            CoinRecord or None if the provider returned nothing.
        """
        ...
    
    @abstractmethod
    async def price(self, name: str, currency: str) -> float:
        """
        Fetch the current price of one coin.
        
        Raises:
            NotFoundError: If no price exists for the currency.
        """
        ...
    
    @abstractmethod
    async def get_global_market_data(self, currency: str) -> GlobalMarketData:
        ...
    
    @abstractmethod
    async def get_coin_graph_data(
        self,
        name: str,
        currency: str,
        start: int,
        end: int,
    ) -> CoinGraph:
        """
        Fetch price history for one coin.
        
        Args:
            name: Coin identifier
            currency: Quote currency
            start: Range start, unix seconds
            end: Range end, unix seconds
        """
        ...
    
    @abstractmethod
    async def get_global_market_graph_data(
        self,
        currency: str,
        start: int,
        end: int,
    ) -> MarketGraph:
        """Fetch total market cap history over [start, end] in unix seconds."""
        ...
    
    @abstractmethod
    def coin_link(self, name: str) -> str:
        ...
    
    @abstractmethod
    def supported_currencies(self) -> list[str]:
        ...
