"""
CoinGecko Market Data Adapter - Implements MarketDataPort.
"""

import asyncio
import math
from typing import Any, Optional

from src.adapters.coingecko.client import (
    CoinGeckoAPIError,
    CoinGeckoClient,
    NotFoundError,
    PingFailedError,
)
from src.adapters.coingecko.page_stream import PageStream, Sleeper
from src.domain.entities.catalog import CatalogEntry
from src.domain.entities.coin import CoinRecord
from src.domain.entities.market import CoinGraph, GlobalMarketData, MarketGraph
from src.domain.ports.market_data_port import MarketDataPort
from src.domain.services.formatter import (
    PERCENT_CHANGE_WINDOWS,
    format_coin_record,
    format_price,
    normalize_currency,
    to_float,
)
from src.domain.services.resolver import CoinResolver
from src.infrastructure.config import Settings
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)

COIN_LINK_URL = "https://www.coingecko.com/en/coins/{id}"

# Keep these in alphabetical order
SUPPORTED_CURRENCIES = [
    "AED", "ARS", "AUD", "BDT", "BHD", "BMD", "BNB", "BRL", "BTC", "CAD",
    "CHF", "CLP", "CNY", "CZK", "DKK", "EOS", "ETH", "EUR", "GBP", "HKD",
    "HUF", "IDR", "ILS", "INR", "JPY", "KRW", "KWD", "LKR", "MMK", "MXN",
    "MYR", "NOK", "NZD", "PHP", "PKR", "PLN", "RUB", "SAR", "SEK", "SGD",
    "THB", "TRY", "TWD", "UAH", "USD", "VEF", "VND", "XAG", "XDR", "ZAR",
]


def calc_days(start: int, end: int) -> int:
    """Whole days covering [start, end] in unix seconds, at least 1."""
    return max(1, math.ceil((end - start) / 86400))


def _series(points: Any) -> list[list[float]]:
    """Keep well-formed [timestamp, value] pairs, dropping null values."""
    return [
        [to_float(point[0]), to_float(point[1])]
        for point in points or []
        if isinstance(point, (list, tuple)) and len(point) >= 2 and point[1] is not None
    ]


class CoinGeckoMarketDataAdapter(MarketDataPort):
    """
    CoinGecko implementation of MarketDataPort.
    
    Ranked market pages are always requested by market cap descending with
    sparklines disabled and the 1h/24h/7d/30d change windows. Every
    user-supplied identifier goes through the resolver first.
    """
    
    ORDER = "market_cap_desc"
    
    def __init__(
        self,
        client: CoinGeckoClient,
        settings: Settings,
        resolver: Optional[CoinResolver] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize adapter.
        
        Args:
            client: CoinGecko HTTP client
            settings: Application settings (page size, ceiling, delay)
            resolver: Identifier resolver; a fresh one is created if omitted
            sleep: Sleep coroutine used between pages
        """
        self.client = client
        self.settings = settings
        self.resolver = resolver or CoinResolver()
        self.max_results_per_page = settings.max_results_per_page
        self.max_pages = settings.max_pages
        self.page_delay = settings.page_delay_seconds
        self._sleep = sleep
    
    async def ping(self) -> None:
        """Check the provider; success means only that the call did not error."""
        try:
            await self.client.get("/ping")
        except CoinGeckoAPIError as e:
            raise PingFailedError(f"failed to ping: {e.message}") from e
    
    async def get_catalog(self) -> list[CatalogEntry]:
        """Fetch the full coin list."""
        logger.info("Fetching coin catalog")
        
        data = await self.client.get("/coins/list")
        
        catalog = [
            CatalogEntry.from_dict(item)
            for item in data or []
            if isinstance(item, dict) and item.get("id")
        ]
        logger.info("Fetched coin catalog", count=len(catalog))
        return catalog
    
    def load_catalog(self, catalog: list[CatalogEntry]) -> None:
        """Rebuild and publish the resolution table."""
        self.resolver.build(catalog)
    
    def resolve(self, name: str) -> str:
        return self.resolver.resolve(name)
    
    async def initialize(self) -> None:
        """Fetch the catalog once and load it into the resolver."""
        self.load_catalog(await self.get_catalog())
    
    async def _get_markets_page(
        self,
        currency: str,
        page: int,
        identifiers: Optional[list[str]] = None,
    ) -> list[CoinRecord]:
        """
        Fetch and normalize one ranked market page.
        
        Args:
            currency: Quote currency, any case
            page: 1-based page index
            identifiers: Optional names to filter by
        
        Returns:
            Records in provider order.
        """
        convert = normalize_currency(currency)
        ids = self.resolver.resolve_many(identifiers or [])
        
        data = await self.client.get(
            "/coins/markets",
            params={
                "vs_currency": convert,
                "ids": ids,
                "order": self.ORDER,
                "per_page": self.max_results_per_page,
                "page": page,
                "sparkline": False,
                "price_change_percentage": list(PERCENT_CHANGE_WINDOWS),
            },
        )
        
        records = [
            format_coin_record(item, convert)
            for item in data or []
            if isinstance(item, dict)
        ]
        logger.debug("Fetched market page", page=page, currency=convert, count=len(records))
        return records
    
    def fetch_all(self, currency: str) -> PageStream:
        """Stream every ranked page, up to the configured ceiling."""
        convert = normalize_currency(currency)
        logger.info("Starting market refresh", currency=convert, max_pages=self.max_pages)
        
        async def fetch_page(page: int) -> list[CoinRecord]:
            return await self._get_markets_page(convert, page)
        
        return PageStream(
            fetch_page,
            max_pages=self.max_pages,
            per_page=self.max_results_per_page,
            page_delay=self.page_delay,
            sleep=self._sleep,
        ).start()
    
    async def fetch_one(self, currency: str, identifiers: list[str]) -> list[CoinRecord]:
        """Fetch the first page filtered to the given identifiers."""
        if not identifiers:
            return []
        return await self._get_markets_page(currency, 1, identifiers)
    
    async def get_coin_data(self, name: str, currency: str) -> Optional[CoinRecord]:
        """Fetch a single coin by name, symbol or ID."""
        records = await self.fetch_one(currency, [name])
        if not records:
            return None
        return records[0]
    
    async def get_coin_data_batch(self, names: list[str], currency: str) -> list[CoinRecord]:
        return await self.fetch_one(currency, names)
    
    async def price(self, name: str, currency: str) -> float:
        """Look up one coin's current price through /simple/price."""
        coin_id = self.resolver.resolve(name)
        convert = normalize_currency(currency)
        
        data: dict[str, Any] = await self.client.get(
            "/simple/price",
            params={"ids": [coin_id], "vs_currencies": [convert]},
        )
        
        for prices in (data or {}).values():
            if isinstance(prices, dict) and prices.get(convert) is not None:
                return format_price(prices[convert], convert)
        
        raise NotFoundError(f"no {convert} price for {coin_id}")
    
    async def get_global_market_data(self, currency: str) -> GlobalMarketData:
        """Fetch total market cap, volume and BTC dominance."""
        convert = normalize_currency(currency)
        
        data = await self.client.get("/global")
        market = (data or {}).get("data") or {}
        
        return GlobalMarketData(
            total_market_cap=to_float((market.get("total_market_cap") or {}).get(convert)),
            total_volume_24h=to_float((market.get("total_volume") or {}).get(convert)),
            bitcoin_dominance=to_float((market.get("market_cap_percentage") or {}).get("btc")),
            active_currencies=int(market.get("active_cryptocurrencies") or 0),
            active_assets=0,
            active_markets=int(market.get("markets") or 0),
        )
    
    async def get_coin_graph_data(
        self,
        name: str,
        currency: str,
        start: int,
        end: int,
    ) -> CoinGraph:
        """Fetch the price series for one coin over [start, end]."""
        coin_id = self.resolver.resolve(name)
        convert = normalize_currency(currency)
        
        data = await self.client.get(
            f"/coins/{coin_id}/market_chart",
            params={"vs_currency": convert, "days": calc_days(start, end)},
        )
        
        return CoinGraph(price=_series((data or {}).get("prices")))
    
    async def get_global_market_graph_data(
        self,
        currency: str,
        start: int,
        end: int,
    ) -> MarketGraph:
        """Fetch the total market cap and volume series over [start, end]."""
        convert = normalize_currency(currency)
        
        data = await self.client.get(
            "/global/market_cap_chart",
            params={"vs_currency": convert, "days": calc_days(start, end)},
        )
        
        chart = (data or {}).get("market_cap_chart") or {}
        return MarketGraph(
            market_cap=_series(chart.get("market_cap")),
            volume=_series(chart.get("volume")),
        )
    
    def coin_link(self, name: str) -> str:
        return COIN_LINK_URL.format(id=self.resolver.resolve(name))
    
    def supported_currencies(self) -> list[str]:
        return list(SUPPORTED_CURRENCIES)
