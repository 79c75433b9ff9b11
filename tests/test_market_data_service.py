"""
Tests for the market data service: startup, refresh and cache coherency.
"""

import pytest
from tenacity import wait_none

from src.adapters.cache.file_cache import FileCache
from src.adapters.cache.memory_cache import MemoryCache
from src.adapters.cache.tiered_cache import TieredCache
from src.adapters.coingecko.client import CoinGeckoAPIError, ProviderConnectionError
from src.adapters.coingecko.market_data_adapter import CoinGeckoMarketDataAdapter
from src.application.services.market_data_service import MarketDataService
from src.domain.entities.catalog import CatalogEntry
from src.domain.entities.market import GlobalMarketData
from src.domain.services.formatter import UNRANKED_RANK, format_coin_record
from tests.conftest import FakeCoinGeckoClient, make_market_item, paged_markets

GLOBAL_PAYLOAD = {
    "data": {
        "active_cryptocurrencies": 12000,
        "markets": 900,
        "total_market_cap": {"usd": 1.7e12},
        "total_volume": {"usd": 7e10},
        "market_cap_percentage": {"btc": 51.5},
    }
}


@pytest.fixture
def cache(settings, clock) -> TieredCache:
    return TieredCache(
        MemoryCache(clock=clock),
        FileCache(settings.cache_dir, clock=clock),
    )


def make_service(client, settings, cache, fake_sleep) -> MarketDataService:
    adapter = CoinGeckoMarketDataAdapter(client, settings, sleep=fake_sleep)
    return MarketDataService(adapter, cache, settings, retry_wait=wait_none())


def record_dict(index: int, **overrides) -> dict:
    data = format_coin_record(make_market_item(index), "usd").to_dict()
    data.update(overrides)
    return data


class TestBootstrap:
    """Tests for startup from the durable tier."""
    
    def test_restores_catalog_and_records(self, settings, cache, fake_sleep):
        """Test stale data is usable before any network request."""
        cache.persist("coingecko_catalog", [{"id": "bitcoin", "name": "Bitcoin", "symbol": "btc"}])
        cache.persist(
            "coingecko_allcoins_usd",
            [record_dict(5, rank=0), record_dict(2), record_dict(1)],
        )
        client = FakeCoinGeckoClient()
        service = make_service(client, settings, cache, fake_sleep)
        
        records = service.bootstrap("USD")
        
        assert [r.id for r in records] == ["coin-1", "coin-2", "coin-5"]
        assert records[-1].rank == UNRANKED_RANK
        assert service.market_data.resolve("BTC") == "bitcoin"
        assert client.calls == []
    
    def test_empty_durable_tier(self, settings, cache, fake_sleep):
        service = make_service(FakeCoinGeckoClient(), settings, cache, fake_sleep)
        assert service.bootstrap() == []
    
    @pytest.mark.asyncio
    async def test_seeds_global_market(self, settings, cache, fake_sleep, clock):
        """Test the restored global snapshot is served briefly, then refetched."""
        stale = GlobalMarketData(total_market_cap=1.0e12, bitcoin_dominance=40.0)
        cache.persist("coingecko_market_usd", stale.to_dict())
        client = FakeCoinGeckoClient({"/global": GLOBAL_PAYLOAD})
        service = make_service(client, settings, cache, fake_sleep)
        
        service.bootstrap()
        assert await service.global_market() == stale
        assert client.calls == []
        
        clock.advance(seconds=11)
        fresh = await service.global_market()
        assert fresh.total_market_cap == 1.7e12
        assert len(client.calls_to("/global")) == 1
    
    @pytest.mark.asyncio
    async def test_forced_global_fetch_replaces_snapshot(self, settings, cache, fake_sleep):
        """Test a forced lookup after startup fetches and overwrites both tiers."""
        cache.persist("coingecko_market_usd", GlobalMarketData(total_market_cap=1.0).to_dict())
        client = FakeCoinGeckoClient({"/global": GLOBAL_PAYLOAD})
        
        for _ in range(3):
            service = make_service(client, settings, cache, fake_sleep)
            service.bootstrap()
            market = await service.global_market(force=True)
            assert market.total_market_cap == 1.7e12
        
        assert len(client.calls_to("/global")) == 3
        assert cache.get_durable("coingecko_market_usd")[0]["total_market_cap"] == 1.7e12
    
    @pytest.mark.asyncio
    async def test_stale_records_do_not_block_refresh(self, settings, cache, fake_sleep):
        cache.persist("coingecko_allcoins_usd", [record_dict(1, price=1.0)])
        client = FakeCoinGeckoClient({"/coins/markets": paged_markets(per_page=2, total_pages=1)})
        service = make_service(client, settings, cache, fake_sleep)
        
        service.bootstrap()
        records = await service.refresh_all()
        
        assert records[0].price == 101.0
        assert client.calls_to("/coins/markets")


class TestRefreshAll:
    """Tests for full record-set refresh."""
    
    @pytest.mark.asyncio
    async def test_writes_both_tiers(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/markets": paged_markets(per_page=2, total_pages=2)})
        service = make_service(client, settings, cache, fake_sleep)
        
        records = await service.refresh_all("usd")
        
        assert [r.id for r in records] == ["coin-1", "coin-2", "coin-3", "coin-4"]
        durable, found = cache.get_durable("coingecko_allcoins_usd")
        assert found is True
        assert [item["id"] for item in durable] == ["coin-1", "coin-2", "coin-3", "coin-4"]
        
        # Within the volatile TTL no request is made
        requests = len(client.calls)
        assert await service.refresh_all("USD") == records
        assert len(client.calls) == requests
    
    @pytest.mark.asyncio
    async def test_force_skips_volatile_hit(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/markets": paged_markets(per_page=2, total_pages=1)})
        service = make_service(client, settings, cache, fake_sleep)
        
        await service.refresh_all()
        await service.refresh_all(force=True)
        
        assert [p["page"] for p in client.calls_to("/coins/markets")] == [1, 2, 1, 2]
    
    @pytest.mark.asyncio
    async def test_first_page_failure_keeps_previous(self, settings, cache, fake_sleep):
        """Test a refresh that yields nothing never overwrites the cache."""
        previous = [record_dict(1, price=1.0)]
        cache.persist("coingecko_allcoins_usd", previous)
        client = FakeCoinGeckoClient({"/coins/markets": ProviderConnectionError("offline")})
        service = make_service(client, settings, cache, fake_sleep)
        
        records = await service.refresh_all(force=True)
        
        assert [r.price for r in records] == [1.0]
        assert cache.get_durable("coingecko_allcoins_usd") == (previous, True)
        assert cache.volatile.get("coingecko_allcoins_usd") == (None, False)
    
    @pytest.mark.asyncio
    async def test_partial_failure_merges(self, settings, cache, fake_sleep):
        """Test delivered pages replace their records and the rest stay stale."""
        cache.persist(
            "coingecko_allcoins_usd",
            [record_dict(1, price=1.0), record_dict(9, price=9.0)],
        )
        client = FakeCoinGeckoClient({
            "/coins/markets": paged_markets(
                per_page=2,
                total_pages=3,
                fail_on_page=2,
                error=CoinGeckoAPIError(429, "Too Many Requests"),
            )
        })
        service = make_service(client, settings, cache, fake_sleep)
        
        records = await service.refresh_all(force=True)
        
        by_id = {r.id: r for r in records}
        assert sorted(by_id) == ["coin-1", "coin-2", "coin-9"]
        assert by_id["coin-1"].price == 101.0
        assert by_id["coin-9"].price == 9.0
        assert [r.id for r in records] == ["coin-1", "coin-2", "coin-9"]
    
    @pytest.mark.asyncio
    async def test_on_page_callback(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/markets": paged_markets(per_page=2, total_pages=5)})
        service = make_service(client, settings, cache, fake_sleep)
        seen = []
        
        await service.refresh_all(on_page=lambda batch: seen.append(len(batch)))
        
        assert seen == [2, 2, 2]
        assert fake_sleep.delays == [1.0, 1.0]
    
    @pytest.mark.asyncio
    async def test_currencies_are_cached_separately(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/markets": paged_markets(per_page=2, total_pages=1)})
        service = make_service(client, settings, cache, fake_sleep)
        
        await service.refresh_all("usd")
        eur = await service.refresh_all("eur")
        
        assert eur[0].currency == "eur"
        assert cache.get_durable("coingecko_allcoins_eur")[1] is True


class TestRefreshCatalog:
    """Tests for catalog warm-up."""
    
    @pytest.mark.asyncio
    async def test_retries_then_persists(self, settings, cache, fake_sleep):
        attempts = []
        
        def handler(params):
            attempts.append(params)
            if len(attempts) < 3:
                raise CoinGeckoAPIError(429, "Too Many Requests")
            return [{"id": "ethereum", "symbol": "eth", "name": "Ethereum"}]
        
        client = FakeCoinGeckoClient({"/coins/list": handler})
        service = make_service(client, settings, cache, fake_sleep)
        
        catalog = await service.refresh_catalog()
        
        assert catalog == [CatalogEntry(id="ethereum", name="Ethereum", symbol="eth")]
        assert len(attempts) == 3
        assert service.market_data.resolve("eth") == "ethereum"
        assert cache.get_durable("coingecko_catalog")[0] == [
            {"id": "ethereum", "name": "Ethereum", "symbol": "eth"}
        ]
    
    @pytest.mark.asyncio
    async def test_final_failure_keeps_previous_table(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/list": ProviderConnectionError("offline")})
        service = make_service(client, settings, cache, fake_sleep)
        service.market_data.load_catalog([CatalogEntry(id="bitcoin", name="Bitcoin", symbol="btc")])
        
        with pytest.raises(ProviderConnectionError):
            await service.refresh_catalog()
        
        assert len(client.calls_to("/coins/list")) == 3
        assert service.market_data.resolve("btc") == "bitcoin"
        assert cache.get_durable("coingecko_catalog") == (None, False)
    
    @pytest.mark.asyncio
    async def test_empty_catalog_keeps_previous_table(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/list": []})
        service = make_service(client, settings, cache, fake_sleep)
        service.market_data.load_catalog([CatalogEntry(id="bitcoin", name="Bitcoin", symbol="btc")])
        
        assert await service.refresh_catalog() == []
        assert service.market_data.resolve("btc") == "bitcoin"


class TestLookups:
    """Tests for single coin, global and graph lookups."""
    
    @pytest.mark.asyncio
    async def test_get_coin_uses_volatile_tier(self, settings, cache, fake_sleep, clock):
        client = FakeCoinGeckoClient({"/coins/markets": [make_market_item(1)]})
        service = make_service(client, settings, cache, fake_sleep)
        
        first = await service.get_coin("coin-1")
        second = await service.get_coin("COIN-1")
        assert first == second
        assert len(client.calls_to("/coins/markets")) == 1
        
        clock.advance(seconds=61)
        await service.get_coin("coin-1")
        assert len(client.calls_to("/coins/markets")) == 2
    
    @pytest.mark.asyncio
    async def test_get_coin_missing(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/coins/markets": []})
        service = make_service(client, settings, cache, fake_sleep)
        
        assert await service.get_coin("nothing") is None
        assert await service.get_coin("nothing") is None
        assert len(client.calls_to("/coins/markets")) == 2
    
    @pytest.mark.asyncio
    async def test_global_market_falls_back_to_durable(self, settings, cache, fake_sleep):
        stale = GlobalMarketData(total_market_cap=1.0e12)
        cache.persist("coingecko_market_usd", stale.to_dict())
        client = FakeCoinGeckoClient({"/global": ProviderConnectionError("offline")})
        service = make_service(client, settings, cache, fake_sleep)
        
        assert await service.global_market() == stale
    
    @pytest.mark.asyncio
    async def test_global_market_failure_without_cache(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/global": ProviderConnectionError("offline")})
        service = make_service(client, settings, cache, fake_sleep)
        
        with pytest.raises(ProviderConnectionError):
            await service.global_market()
    
    @pytest.mark.asyncio
    async def test_global_market_stores_both_tiers(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({"/global": GLOBAL_PAYLOAD})
        service = make_service(client, settings, cache, fake_sleep)
        
        market = await service.global_market()
        
        assert market.bitcoin_dominance == 51.5
        assert cache.get_durable("coingecko_market_usd")[0]["active_markets"] == 900
    
    @pytest.mark.asyncio
    async def test_coin_graph_is_not_persisted(self, settings, cache, fake_sleep):
        client = FakeCoinGeckoClient({
            "/coins/bitcoin/market_chart": {"prices": [[1704067200000, 42000.0]]}
        })
        service = make_service(client, settings, cache, fake_sleep)
        
        graph = await service.coin_graph("bitcoin", 0, 86400)
        again = await service.coin_graph("bitcoin", 0, 86400)
        
        assert graph == again
        assert len(client.calls) == 1
        assert list(cache.durable.cache_dir.glob("fcache.*")) == []
    
    @pytest.mark.asyncio
    async def test_global_market_graph_uses_volatile_tier(self, settings, cache, fake_sleep, clock):
        client = FakeCoinGeckoClient({
            "/global/market_cap_chart": {
                "market_cap_chart": {"market_cap": [[1704067200000, 1.6e12]], "volume": []}
            }
        })
        service = make_service(client, settings, cache, fake_sleep)
        
        graph = await service.global_market_graph(0, 86400 * 7, "USD")
        again = await service.global_market_graph(0, 86400 * 7, "usd")
        
        assert graph.market_cap == [[1704067200000.0, 1.6e12]]
        assert again is graph
        assert len(client.calls) == 1
        assert list(cache.durable.cache_dir.glob("fcache.*")) == []
        
        clock.advance(seconds=61)
        await service.global_market_graph(0, 86400 * 7)
        assert len(client.calls) == 2
    
    def test_clean(self, settings, cache, fake_sleep):
        cache.store("coingecko_allcoins_usd", [record_dict(1)])
        cache.persist("coingecko_catalog", [])
        service = make_service(FakeCoinGeckoClient(), settings, cache, fake_sleep)
        
        assert service.clean() == 2
        assert service.bootstrap() == []
