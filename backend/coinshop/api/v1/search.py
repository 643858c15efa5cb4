"""
CoinShop API - Product Search Endpoints

Faceted search over active products and autocomplete suggestions.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.core.database import get_db
from coinshop.models.product import ListingType, MetalType
from coinshop.schemas.product import ProductResponse
from coinshop.schemas.search import FacetsResponse, SearchResponse, SuggestionsResponse
from coinshop.services.search import (
    DEFAULT_PAGE_SIZE,
    SearchFilters,
    get_search_suggestions,
    search_products,
)

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search(
    q: Optional[str] = Query(None, max_length=200, description="Text query"),
    category: Optional[list[UUID]] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    metal: Optional[list[MetalType]] = Query(None),
    grade: Optional[list[str]] = Query(None),
    certification: Optional[list[str]] = Query(None),
    year_min: Optional[int] = Query(None),
    year_max: Optional[int] = Query(None),
    listing_type: Optional[list[ListingType]] = Query(None),
    in_stock: bool = Query(False),
    sort: str = Query("relevance", pattern="^(relevance|price|created_at|views|end_time)$"),
    direction: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, description="Capped at 100"),
    db: AsyncSession = Depends(get_db),
):
    """
    Search active products.

    Repeat list parameters to select several values, e.g.
    `?metal=gold&metal=silver`. Facet counts reflect the other filters;
    the category facet ignores the category filter so it can be widened.
    """
    filters = SearchFilters(
        query=q,
        categories=category or [],
        min_price=min_price,
        max_price=max_price,
        metal_types=metal or [],
        grades=grade or [],
        certifications=certification or [],
        year_min=year_min,
        year_max=year_max,
        listing_types=listing_type or [],
        in_stock=in_stock,
    )
    result = await search_products(
        db, filters, sort=sort, direction=direction, page=page, page_size=page_size
    )
    return SearchResponse(
        products=[ProductResponse.model_validate(p) for p in result.products],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        facets=FacetsResponse.model_validate(result.facets),
    )


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    q: str = Query("", max_length=100),
    db: AsyncSession = Depends(get_db),
):
    """Trending terms for queries under 2 characters, else matching titles."""
    query = q.strip()
    return SuggestionsResponse(
        query=query,
        suggestions=await get_search_suggestions(db, query),
        trending=len(query) < 2,
    )
