"""
Market Data Service - Coordinates resolution, acquisition and caching.

Startup is modeled as "durable load, then optional async refresh overwrite":
bootstrap() makes the last known catalog and record set available without
network access, and the refresh_* methods replace them once fresh data
arrives. A failed refresh never touches what is already cached.
"""

from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Any, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from src.adapters.cache.tiered_cache import TieredCache, cache_key
from src.domain.entities.catalog import CatalogEntry
from src.domain.entities.coin import CoinRecord
from src.domain.entities.market import CoinGraph, GlobalMarketData, MarketGraph
from src.domain.ports.market_data_port import MarketDataPort
from src.domain.services.formatter import format_rank, normalize_currency
from src.infrastructure.config import Settings
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)

PROVIDER = "coingecko"

# Global market snapshot restored from disk is only trusted briefly
MARKET_SEED_TTL = timedelta(seconds=10)


def sort_by_rank(records: Iterable[CoinRecord]) -> list[CoinRecord]:
    """Sort ascending by rank; unranked coins carry the sentinel and land last."""
    return sorted(records, key=lambda r: (r.rank, r.name.lower()))


class MarketDataService:
    """
    Application service in front of the market data port and the cache.
    
    Cache keys:
    - coingecko_catalog: catalog snapshot (durable)
    - coingecko_allcoins_<currency>: last good record set (both tiers)
    - coingecko_market_<currency>: global market stats (both tiers)
    - coingecko_coin_<id>_<currency>: single coin lookups (volatile)
    - coingecko_graph_<id>_<currency>_<start>_<end>: price series (volatile)
    - coingecko_globaldata_<currency>_<start>_<end>: market cap series (volatile)
    """
    
    def __init__(
        self,
        market_data_port: MarketDataPort,
        cache: TieredCache,
        settings: Settings,
        catalog_attempts: int = 3,
        retry_wait: Any = None,
    ):
        """
        Initialize the service.
        
        Args:
            market_data_port: Provider adapter
            cache: Two-tier cache
            settings: Application settings
            catalog_attempts: Attempts for the catalog warm-up
            retry_wait: tenacity wait strategy between catalog attempts
        """
        self.market_data = market_data_port
        self.cache = cache
        self.settings = settings
        self.catalog_attempts = catalog_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self.volatile_ttl = timedelta(seconds=settings.volatile_ttl_seconds)
    
    def _currency(self, currency: Optional[str]) -> str:
        return normalize_currency(currency or self.settings.default_currency)
    
    @staticmethod
    def _key(name: str) -> str:
        return cache_key(PROVIDER, name)
    
    @staticmethod
    def _decode_records(value: Any) -> list[CoinRecord]:
        """Turn a cached value (objects or dicts) into records with normalized rank."""
        records = []
        for item in value or []:
            record = item if isinstance(item, CoinRecord) else CoinRecord.from_dict(item)
            record.rank = format_rank(record.rank)
            records.append(record)
        return records
    
    def cached_records(self, currency: Optional[str] = None) -> list[CoinRecord]:
        """Last known record set from whichever tier has it, ranked."""
        value, found = self.cache.get(self._key(f"allcoins_{self._currency(currency)}"))
        if not found:
            return []
        return sort_by_rank(self._decode_records(value))
    
    def bootstrap(self, currency: Optional[str] = None) -> list[CoinRecord]:
        """
        Load durable state so the application is usable before any request.
        
        Restores the resolver from the catalog snapshot, seeds the volatile
        tier with the last global market stats, and returns the last known
        record set sorted by rank.
        
        Args:
            currency: Currency of the record set to restore
        
        Returns:
            Stale records, possibly empty.
        """
        convert = self._currency(currency)
        
        catalog_raw, found = self.cache.get_durable(self._key("catalog"))
        if found and catalog_raw:
            catalog = [CatalogEntry.from_dict(item) for item in catalog_raw]
            self.market_data.load_catalog(catalog)
            logger.info("Restored catalog snapshot", count=len(catalog))
        
        market_key = self._key(f"market_{convert}")
        market_raw, found = self.cache.get_durable(market_key)
        if found and market_raw:
            self.cache.set(market_key, GlobalMarketData.from_dict(market_raw), MARKET_SEED_TTL)
        
        records_raw, found = self.cache.get_durable(self._key(f"allcoins_{convert}"))
        records = sort_by_rank(self._decode_records(records_raw)) if found else []
        logger.info("Bootstrapped from durable cache", currency=convert, records=len(records))
        return records
    
    async def refresh_catalog(self) -> list[CatalogEntry]:
        """
        Fetch the catalog, publish a new resolution table and persist it.
        
        Retries with exponential backoff; on final failure the previous
        table and snapshot stay in place and the error is raised.
        """
        catalog: list[CatalogEntry] = []
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.catalog_attempts),
            wait=self.retry_wait,
            reraise=True,
        ):
            with attempt:
                catalog = await self.market_data.get_catalog()
        
        if not catalog:
            logger.warning("Provider returned an empty catalog, keeping previous table")
            return catalog
        
        self.market_data.load_catalog(catalog)
        self.cache.persist(self._key("catalog"), [entry.to_dict() for entry in catalog])
        return catalog
    
    async def refresh_all(
        self,
        currency: Optional[str] = None,
        force: bool = False,
        on_page: Optional[Callable[[list[CoinRecord]], None]] = None,
    ) -> list[CoinRecord]:
        """
        Refresh the full ranked record set.
        
        Args:
            currency: Quote currency, any case
            force: Skip the volatile-tier short circuit
            on_page: Called with each batch as it arrives
        
        Returns:
            Merged record set sorted by rank. When no page arrives the last
            good set is returned unchanged.
        """
        convert = self._currency(currency)
        key = self._key(f"allcoins_{convert}")
        
        if not force:
            cached, found = self.cache.volatile.get(key)
            if found:
                logger.debug("Using cached record set", currency=convert)
                return cached
        
        previous = self.cached_records(convert)
        merged = {record.id: record for record in previous}
        
        stream = self.market_data.fetch_all(convert)
        async with stream:
            async for batch in stream:
                for record in batch:
                    merged[record.id] = record
                if on_page is not None:
                    on_page(batch)
        
        if stream.error is not None:
            logger.warning(
                "Market refresh ended early",
                currency=convert,
                pages=stream.pages_emitted,
                error=str(stream.error),
            )
        
        if stream.pages_emitted == 0:
            logger.warning("No market pages received, keeping cached records", currency=convert)
            return previous
        
        records = sort_by_rank(merged.values())
        self.cache.store(
            key,
            records,
            self.volatile_ttl,
            durable_value=[record.to_dict() for record in records],
        )
        logger.info(
            "Market refresh complete",
            currency=convert,
            pages=stream.pages_emitted,
            records=len(records),
        )
        return records
    
    async def get_coin(self, name: str, currency: Optional[str] = None) -> Optional[CoinRecord]:
        """Fetch one coin, reusing a lookup made within the volatile TTL."""
        convert = self._currency(currency)
        coin_id = self.market_data.resolve(name)
        key = self._key(f"coin_{coin_id}_{convert}")
        
        cached, found = self.cache.volatile.get(key)
        if found:
            return cached
        
        record = await self.market_data.get_coin_data(name, convert)
        if record is not None:
            self.cache.set(key, record, self.volatile_ttl)
        return record
    
    async def get_coins(self, names: list[str], currency: Optional[str] = None) -> list[CoinRecord]:
        """Fetch several coins in one request."""
        return await self.market_data.fetch_one(self._currency(currency), names)
    
    async def price(self, name: str, currency: Optional[str] = None) -> float:
        return await self.market_data.price(name, self._currency(currency))
    
    async def global_market(
        self,
        currency: Optional[str] = None,
        force: bool = False,
    ) -> GlobalMarketData:
        """
        Global market stats, preferring stale data over none.
        
        Args:
            currency: Quote currency, any case
            force: Skip the volatile-tier short circuit and fetch
        
        Raises:
            Exception: The fetch error, only when no cached copy exists.
        """
        convert = self._currency(currency)
        key = self._key(f"market_{convert}")
        
        if not force:
            cached, found = self.cache.volatile.get(key)
            if found:
                return cached
        
        try:
            market = await self.market_data.get_global_market_data(convert)
        except Exception as e:
            stale, found = self.cache.get_durable(key)
            if not found:
                raise
            logger.warning("Using stale global market data", error=str(e))
            return GlobalMarketData.from_dict(stale)
        
        self.cache.store(key, market, self.volatile_ttl, durable_value=market.to_dict())
        return market
    
    async def coin_graph(
        self,
        name: str,
        start: int,
        end: int,
        currency: Optional[str] = None,
    ) -> CoinGraph:
        convert = self._currency(currency)
        coin_id = self.market_data.resolve(name)
        key = self._key(f"graph_{coin_id}_{convert}_{start}_{end}")
        
        cached, found = self.cache.volatile.get(key)
        if found:
            return cached
        
        graph = await self.market_data.get_coin_graph_data(name, convert, start, end)
        self.cache.set(key, graph, self.volatile_ttl)
        return graph
    
    async def global_market_graph(
        self,
        start: int,
        end: int,
        currency: Optional[str] = None,
    ) -> MarketGraph:
        convert = self._currency(currency)
        key = self._key(f"globaldata_{convert}_{start}_{end}")
        
        cached, found = self.cache.volatile.get(key)
        if found:
            return cached
        
        graph = await self.market_data.get_global_market_graph_data(convert, start, end)
        self.cache.set(key, graph, self.volatile_ttl)
        return graph
    
    async def ping(self) -> None:
        await self.market_data.ping()
    
    def coin_link(self, name: str) -> str:
        return self.market_data.coin_link(name)
    
    def supported_currencies(self) -> list[str]:
        return self.market_data.supported_currencies()
    
    def clean(self) -> int:
        """Operator reset of both cache tiers; returns durable files removed."""
        return self.cache.clean()
