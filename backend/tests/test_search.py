"""
CoinShop - Product Search Tests
"""

from decimal import Decimal

import pytest

from coinshop.models.product import ListingType, MetalType, ProductStatus
from coinshop.services.search import SearchFilters, get_search_suggestions, search_products


@pytest.fixture
def catalog(factory):
    """A small mixed catalog across two categories."""

    async def _build():
        us = await factory.category("US Coins")
        world = await factory.category("World Coins")
        coins = {
            "morgan": await factory.product(
                price="85.00", title="1921 Morgan Silver Dollar", category_id=us.id,
                metal_type=MetalType.SILVER, grade="MS-63", certification="PCGS", year=1921, views=40,
            ),
            "eagle": await factory.product(
                price="2350.00", title="2021 American Gold Eagle", category_id=us.id,
                metal_type=MetalType.GOLD, grade="MS-70", certification="NGC", year=2021, views=90,
                listing_type=ListingType.AUCTION,
            ),
            "maple": await factory.product(
                price="34.00", title="2020 Silver Maple Leaf", category_id=world.id,
                metal_type=MetalType.SILVER, grade="MS-69", certification="NGC", year=2020, views=5,
            ),
            "cent": await factory.product(
                price="1450.00", title="1909-S VDB Lincoln Cent", category_id=us.id,
                metal_type=MetalType.COPPER, grade="VF-30", certification="PCGS", year=1909,
                quantity=0, featured=True,
            ),
        }
        await factory.product(price="99.00", title="Draft Morgan Dollar", status=ProductStatus.DRAFT)
        return us, world, coins

    return _build


class TestSearchProducts:
    """Filtering, sorting and paging."""

    @pytest.mark.asyncio
    async def test_only_active_products(self, db, catalog):
        """Drafts never appear."""
        await catalog()
        result = await search_products(db, SearchFilters())
        assert result.total == 4
        assert all(p.status == ProductStatus.ACTIVE for p in result.products)

    @pytest.mark.asyncio
    async def test_text_query_is_case_insensitive(self, db, catalog):
        """The query matches titles regardless of case."""
        _, _, coins = await catalog()
        result = await search_products(db, SearchFilters(query="morgan"))
        assert [p.id for p in result.products] == [coins["morgan"].id]

    @pytest.mark.asyncio
    async def test_combined_filters(self, db, catalog):
        """Metal, certification, price and year filters combine with AND."""
        _, _, coins = await catalog()
        filters = SearchFilters(
            metal_types=[MetalType.SILVER],
            certifications=["NGC"],
            min_price=Decimal("10"),
            max_price=Decimal("100"),
            year_min=2000,
        )
        result = await search_products(db, filters)
        assert [p.id for p in result.products] == [coins["maple"].id]

    @pytest.mark.asyncio
    async def test_listing_type_and_stock(self, db, catalog):
        """Listing type and in-stock filters narrow the results."""
        _, _, coins = await catalog()

        auctions = await search_products(db, SearchFilters(listing_types=[ListingType.AUCTION]))
        assert [p.id for p in auctions.products] == [coins["eagle"].id]

        in_stock = await search_products(db, SearchFilters(in_stock=True))
        assert coins["cent"].id not in {p.id for p in in_stock.products}
        assert in_stock.total == 3

    @pytest.mark.asyncio
    async def test_sort_by_price(self, db, catalog):
        """Price sort honours the direction."""
        await catalog()
        result = await search_products(db, SearchFilters(), sort="price", direction="asc")
        prices = [p.price for p in result.products]
        assert prices == sorted(prices)

    @pytest.mark.asyncio
    async def test_relevance_puts_featured_first(self, db, catalog):
        """Featured items lead, then the most viewed."""
        _, _, coins = await catalog()
        result = await search_products(db, SearchFilters())
        assert [p.id for p in result.products[:2]] == [coins["cent"].id, coins["eagle"].id]

    @pytest.mark.asyncio
    async def test_paging(self, db, catalog):
        """Pages report totals and the size is capped at 100."""
        await catalog()
        result = await search_products(db, SearchFilters(), page=2, page_size=3)
        assert result.total == 4
        assert result.total_pages == 2
        assert len(result.products) == 1

        capped = await search_products(db, SearchFilters(), page_size=500)
        assert capped.page_size == 100


class TestFacets:
    """Facet counts for the sidebar."""

    @pytest.mark.asyncio
    async def test_category_facet_ignores_category_filter(self, db, catalog):
        """Sibling categories keep their counts when one is selected."""
        us, world, _ = await catalog()
        result = await search_products(db, SearchFilters(categories=[world.id]))

        assert result.total == 1
        counts = {b.label: b.count for b in result.facets.categories}
        assert counts == {"US Coins": 3, "World Coins": 1}

    @pytest.mark.asyncio
    async def test_metal_and_price_facets(self, db, catalog):
        """Metal and price-range facets follow the active filters."""
        await catalog()
        result = await search_products(db, SearchFilters())

        metals = {b.value: b.count for b in result.facets.metal_types}
        assert metals == {"silver": 2, "gold": 1, "copper": 1}

        ranges = {b.label: b.count for b in result.facets.price_ranges}
        assert ranges["$25 - $50"] == 1
        assert ranges["$50 - $100"] == 1
        assert ranges["$1,000 - $5,000"] == 2
        assert "$5,000+" not in ranges


class TestSuggestions:
    """Autocomplete."""

    @pytest.mark.asyncio
    async def test_short_query_returns_trending(self, db, catalog):
        """Under two characters, trending titles come back truncated."""
        await catalog()
        suggestions = await get_search_suggestions(db, "m")
        assert suggestions[0] == "2021 American Gold Eagle"
        assert "1921 Morgan Silver Dollar" in suggestions

    @pytest.mark.asyncio
    async def test_matching_titles(self, db, catalog):
        """Longer queries match titles and grades of active products."""
        await catalog()
        assert await get_search_suggestions(db, "morgan") == ["1921 Morgan Silver Dollar"]
        assert await get_search_suggestions(db, "VF-30") == ["1909-S VDB Lincoln Cent"]
