"""
Shared fixtures and fakes for the test suite.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union

import pytest

from src.infrastructure.config import Settings


class FakeClock:
    """Controllable time source for cache tests."""
    
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeSleep:
    """Records requested delays instead of sleeping."""
    
    def __init__(self):
        self.delays: list[float] = []
    
    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


Route = Union[Any, Exception, Callable[[dict], Any]]


class FakeCoinGeckoClient:
    """
    Stand-in for CoinGeckoClient.
    
    Routes map a path to a static payload, an exception to raise, or a
    callable receiving the request params.
    """
    
    def __init__(self, routes: Optional[dict[str, Route]] = None):
        self.routes: dict[str, Route] = routes or {}
        self.calls: list[tuple[str, dict]] = []
    
    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        params = dict(params or {})
        self.calls.append((path, params))
        route = self.routes[path]
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(params)
        return route
    
    def calls_to(self, path: str) -> list[dict]:
        return [params for called, params in self.calls if called == path]
    
    async def close(self) -> None:
        pass


def make_market_item(index: int, **overrides: Any) -> dict:
    """Raw /coins/markets item for a coin ranked ``index``."""
    item = {
        "id": f"coin-{index}",
        "symbol": f"c{index}",
        "name": f"Coin {index}",
        "current_price": 100.0 + index,
        "market_cap": 1_000_000.0 / index,
        "market_cap_rank": index,
        "total_volume": 5000.0,
        "circulating_supply": 1000.0,
        "total_supply": 2000.0,
        "price_change_percentage_1h_in_currency": 0.1,
        "price_change_percentage_24h_in_currency": 1.234,
        "price_change_percentage_7d_in_currency": -2.5,
        "price_change_percentage_30d_in_currency": 10.0,
        "last_updated": "2024-01-01T00:00:00.000Z",
    }
    item.update(overrides)
    return item


def paged_markets(
    per_page: int,
    total_pages: int,
    fail_on_page: Optional[int] = None,
    error: Optional[Exception] = None,
) -> Callable[[dict], list[dict]]:
    """Route serving ``total_pages`` full pages, optionally failing on one."""
    
    def handler(params: dict) -> list[dict]:
        page = params["page"]
        if fail_on_page is not None and page == fail_on_page:
            raise error or RuntimeError(f"page {page} failed")
        if page > total_pages:
            return []
        start = (page - 1) * per_page + 1
        return [make_market_item(i) for i in range(start, start + per_page)]
    
    return handler


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with small pages and a temporary cache directory."""
    return Settings(
        _env_file=None,
        max_results_per_page=2,
        max_pages=3,
        page_delay_seconds=1.0,
        cache_dir=str(tmp_path / "cache"),
        volatile_ttl_seconds=60,
    )
