"""
Dependency injection container for the application.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from src.adapters.cache.file_cache import FileCache
from src.adapters.cache.memory_cache import MemoryCache
from src.adapters.cache.tiered_cache import TieredCache
from src.adapters.coingecko.client import CoinGeckoClient
from src.adapters.coingecko.market_data_adapter import CoinGeckoMarketDataAdapter
from src.application.services.market_data_service import MarketDataService
from src.domain.services.resolver import CoinResolver
from src.infrastructure.config import Settings
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Container:
    """
    Dependency injection container.
    
    Provides configured instances of all application components.
    """
    
    settings: Settings
    
    # Adapters
    coingecko_client: CoinGeckoClient
    resolver: CoinResolver
    market_data_adapter: CoinGeckoMarketDataAdapter
    cache: TieredCache
    
    # Services
    market_data_service: MarketDataService
    
    _initialized: bool = False


_container: Optional[Container] = None


def create_cache(settings: Settings) -> TieredCache:
    """
    Build the two cache tiers.
    
    The durable tier is skipped when disabled or when the cache directory
    cannot be created; the application then runs on the volatile tier alone.
    """
    volatile = MemoryCache(default_ttl=timedelta(seconds=settings.volatile_ttl_seconds))
    
    durable: Optional[FileCache] = None
    if not settings.no_cache:
        try:
            durable = FileCache(settings.cache_path)
        except OSError as e:
            logger.error(
                "Proceeding without durable cache",
                cache_dir=str(settings.cache_path),
                error=str(e),
            )
    
    return TieredCache(volatile, durable)


async def create_container(settings: Optional[Settings] = None) -> Container:
    """
    Create and configure the dependency container.
    
    Args:
        settings: Optional settings override
    
    Returns:
        Configured Container instance.
    """
    global _container
    
    if settings is None:
        from src.infrastructure.config import get_settings
        settings = get_settings()
    
    coingecko_client = CoinGeckoClient(settings)
    resolver = CoinResolver()
    market_data_adapter = CoinGeckoMarketDataAdapter(coingecko_client, settings, resolver)
    cache = create_cache(settings)
    
    market_data_service = MarketDataService(
        market_data_port=market_data_adapter,
        cache=cache,
        settings=settings,
    )
    
    _container = Container(
        settings=settings,
        coingecko_client=coingecko_client,
        resolver=resolver,
        market_data_adapter=market_data_adapter,
        cache=cache,
        market_data_service=market_data_service,
        _initialized=True,
    )
    
    return _container


async def cleanup_container() -> None:
    """Clean up container resources."""
    global _container
    
    if _container is not None:
        await _container.coingecko_client.close()
        _container = None


def get_container() -> Container:
    """
    Get the current container instance.
    
    Returns:
        The configured Container.
    
    Raises:
        RuntimeError: If container not initialized.
    """
    if _container is None:
        raise RuntimeError("Container not initialized. Call create_container() first.")
    return _container
