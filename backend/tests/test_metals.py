"""
CoinShop - Metals Spot Price Tests

Cache expiry, the live feed and the database/static fallbacks.
"""

import httpx
import pytest
from sqlalchemy import func, select

from coinshop.models.metal_price import MetalPrice
from coinshop.services.metals import (
    FALLBACK_PRICES,
    MetalsFeedError,
    MetalsPriceCache,
    MetalsPriceService,
    fallback_prices,
)

LIVE_PAYLOAD = {"gold": 2400.10, "silver": 31.25, "platinum": 990.00, "palladium": 1010.50}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def feed(handler):
    """Service with a mock transport and an API key."""
    calls = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    service = MetalsPriceService(
        cache=MetalsPriceCache(ttl_seconds=300),
        api_url="https://metals.example.com/v1/spot",
        api_key="test-metals-key",
        transport=httpx.MockTransport(_handler),
    )
    return service, calls


async def snapshot_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(MetalPrice))).scalar()


class TestMetalsPriceCache:
    """The single-value TTL cache."""

    def test_expires_after_ttl(self):
        """Values are served until the TTL passes."""
        clock = FakeClock()
        cache = MetalsPriceCache(ttl_seconds=300, clock=clock)
        prices = fallback_prices()

        assert cache.get() is None
        cache.set(prices)
        clock.now += 299
        assert cache.get() is prices
        clock.now += 1
        assert cache.get() is None

    def test_clear(self):
        """Clearing drops the value immediately."""
        cache = MetalsPriceCache(ttl_seconds=300)
        cache.set(fallback_prices())
        cache.clear()
        assert cache.get() is None


class TestFetchLive:
    """Reading the feed."""

    @pytest.mark.asyncio
    async def test_no_api_key_returns_static_prices(self):
        """Without a key no request is made."""
        service, calls = feed(lambda request: httpx.Response(200, json=LIVE_PAYLOAD))
        service.api_key = ""

        prices = await service.fetch_live()

        assert calls == []
        assert prices.source == "fallback"
        assert prices.gold == FALLBACK_PRICES["gold"]

    @pytest.mark.asyncio
    async def test_live_prices_use_bearer_key(self):
        """The key is sent as a bearer token and the payload parsed."""
        service, calls = feed(lambda request: httpx.Response(200, json=LIVE_PAYLOAD))

        prices = await service.fetch_live()

        assert calls[0].headers["Authorization"] == "Bearer test-metals-key"
        assert prices.source == "live"
        assert prices.gold == 2400.10
        assert prices.palladium == 1010.50

    @pytest.mark.asyncio
    async def test_list_payload_is_merged(self):
        """A list of single-metal objects is merged; missing metals fall back."""
        payload = [{"gold": 2400.10}, {"silver": 31.25}, "noise"]
        service, _ = feed(lambda request: httpx.Response(200, json=payload))

        prices = await service.fetch_live()

        assert prices.gold == 2400.10
        assert prices.silver == 31.25
        assert prices.platinum == FALLBACK_PRICES["platinum"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(503, text="down"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json="a string"),
            httpx.Response(200, json={"gold": "lots"}),
        ],
    )
    async def test_feed_errors(self, response):
        """Bad statuses and payloads raise MetalsFeedError."""
        service, _ = feed(lambda request: response)
        with pytest.raises(MetalsFeedError):
            await service.fetch_live()


class TestGetPrices:
    """The cache, live, database, static chain."""

    @pytest.mark.asyncio
    async def test_live_then_cache(self, db):
        """Live prices are stored once and then served from the cache."""
        service, calls = feed(lambda request: httpx.Response(200, json=LIVE_PAYLOAD))

        first = await service.get_prices(db)
        second = await service.get_prices(db)

        assert first.source == "live"
        assert second.source == "cache"
        assert second.gold == first.gold
        assert len(calls) == 1
        assert await snapshot_count(db) == 1

    @pytest.mark.asyncio
    async def test_feed_down_serves_last_snapshot(self, db):
        """On feed failure the stored snapshot is served."""
        healthy, _ = feed(lambda request: httpx.Response(200, json=LIVE_PAYLOAD))
        await healthy.get_prices(db)

        broken, _ = feed(lambda request: httpx.Response(500))
        prices = await broken.get_prices(db)

        assert prices.source == "database"
        assert prices.gold == 2400.10

    @pytest.mark.asyncio
    async def test_feed_down_without_snapshot(self, db):
        """With nothing stored the static prices are served."""
        broken, _ = feed(lambda request: httpx.Response(500))
        prices = await broken.get_prices(db)

        assert prices.source == "fallback"
        assert prices.silver == FALLBACK_PRICES["silver"]
        assert await snapshot_count(db) == 0

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, db):
        """refresh polls the feed even when the cache is warm."""
        service, calls = feed(lambda request: httpx.Response(200, json=LIVE_PAYLOAD))
        await service.get_prices(db)

        prices = await service.refresh(db)

        assert prices.source == "live"
        assert len(calls) == 2
        assert await snapshot_count(db) == 2


class TestMetalsEndpoint:
    """GET /api/v1/metals."""

    @pytest.mark.asyncio
    async def test_ticker_payload(self, api_client):
        """The ticker returns all four metals with their source."""
        response = await api_client.get("/api/v1/metals")

        assert response.status_code == 200
        body = response.json()
        assert set(body) >= {"gold", "silver", "platinum", "palladium", "timestamp", "currency", "source"}
        assert body["currency"] == "USD"
