"""
CoinShop - Consignment Client Tests
"""

from uuid import uuid4

import pytest

from coinshop.core.exceptions import NotFoundError, ValidationError
from coinshop.models.client import ClientStatus, SourceType
from coinshop.services.clients import (
    create_client,
    create_source,
    delete_client,
    get_client,
    list_clients,
    list_sources,
    parse_source_type,
    update_client,
    update_source,
)


class TestClients:
    """Client CRUD."""

    @pytest.mark.asyncio
    async def test_slugs_are_unique(self, db):
        """Clients with the same name get numbered slugs."""
        first = await create_client(db, {"name": "Liberty Coin Co.", "email": "a@example.com"})
        second = await create_client(db, {"name": "Liberty Coin Co", "email": "b@example.com"})
        third = await create_client(db, {"name": "LIBERTY coin co", "email": "c@example.com"})

        assert [first.slug, second.slug, third.slug] == [
            "liberty-coin-co",
            "liberty-coin-co-2",
            "liberty-coin-co-3",
        ]
        assert first.status == ClientStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [{"name": "Heritage"}, {"email": "x@example.com"}, {"name": "!!!", "email": "x@example.com"}],
    )
    async def test_required_fields(self, db, data):
        """Name and email are required and the name must slug."""
        with pytest.raises(ValidationError):
            await create_client(db, data)

    @pytest.mark.asyncio
    async def test_list_with_product_counts(self, db, factory):
        """Listing carries product counts and filters by status and search."""
        busy = await factory.client("Alpha Numismatics")
        await factory.client("Beta Bullion")
        await factory.product(client=busy)
        await factory.product(client=busy)

        rows = await list_clients(db)
        assert [(c.name, n) for c, n in rows] == [("Alpha Numismatics", 2), ("Beta Bullion", 0)]

        rows = await list_clients(db, search="bullion")
        assert [c.name for c, _ in rows] == ["Beta Bullion"]
        assert await list_clients(db, status=ClientStatus.PAUSED) == []

    @pytest.mark.asyncio
    async def test_rename_updates_slug(self, db):
        """Renaming a client re-derives its slug."""
        client = await create_client(db, {"name": "Old Name", "email": "o@example.com"})

        updated = await update_client(db, client.id, {"name": "New Name", "status": ClientStatus.ACTIVE})

        assert updated.slug == "new-name"
        assert updated.status == ClientStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_delete(self, db):
        """Deleted clients are gone along with their sources."""
        client = await create_client(db, {"name": "Gone Soon", "email": "g@example.com"})
        await create_source(db, client.id, {"name": "Shop", "type": "website", "url": "https://g.example.com"})

        await delete_client(db, client.id)

        with pytest.raises(NotFoundError):
            await get_client(db, client.id)


class TestSources:
    """Scrape source configuration."""

    def test_parse_source_type(self):
        """Known types parse; unknown ones list the allowed values."""
        assert parse_source_type("ebay_store") == SourceType.EBAY_STORE
        with pytest.raises(ValidationError) as exc:
            parse_source_type("myspace")
        assert "website" in exc.value.details["allowed"]

    @pytest.mark.asyncio
    async def test_create_and_update(self, db, factory):
        """Sources default their frequency and accept type changes."""
        client = await factory.client()
        source = await create_source(
            db, client.id, {"name": "eBay", "type": "ebay_store", "url": "https://ebay.example.com/str/x"}
        )
        assert source.scrape_frequency == 60
        assert source.is_active is True

        updated = await update_source(db, client.id, source.id, {"type": "shopify", "is_active": False})
        assert updated.type == SourceType.SHOPIFY
        assert updated.is_active is False

        assert [s.id for s in await list_sources(db, client.id)] == [source.id]

    @pytest.mark.asyncio
    async def test_source_errors(self, db, factory):
        """Missing fields, unknown clients and foreign sources are rejected."""
        client = await factory.client()
        other = await factory.client()
        source = await create_source(db, other.id, {"name": "Site", "type": "website", "url": "https://o.example.com"})

        with pytest.raises(ValidationError):
            await create_source(db, client.id, {"name": "No URL", "type": "website"})
        with pytest.raises(NotFoundError):
            await create_source(db, uuid4(), {"name": "x", "type": "website", "url": "https://x.example.com"})
        with pytest.raises(NotFoundError):
            await update_source(db, client.id, source.id, {"is_active": False})
