"""
CoinShop - Product Search Service

Filter/sort query building over active products, facet counts and
autocomplete suggestions.
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.models.auction import Auction, AuctionStatus
from coinshop.models.product import (
    Category,
    ListingType,
    MetalType,
    Product,
    ProductStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 100

SORT_FIELDS = ("relevance", "price", "created_at", "views", "end_time")

PRICE_BUCKETS = [
    (Decimal("0"), Decimal("25"), "Under $25"),
    (Decimal("25"), Decimal("50"), "$25 - $50"),
    (Decimal("50"), Decimal("100"), "$50 - $100"),
    (Decimal("100"), Decimal("250"), "$100 - $250"),
    (Decimal("250"), Decimal("500"), "$250 - $500"),
    (Decimal("500"), Decimal("1000"), "$500 - $1,000"),
    (Decimal("1000"), Decimal("5000"), "$1,000 - $5,000"),
    (Decimal("5000"), None, "$5,000+"),
]


@dataclass
class SearchFilters:
    query: Optional[str] = None
    categories: list[UUID] = field(default_factory=list)
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    metal_types: list[MetalType] = field(default_factory=list)
    grades: list[str] = field(default_factory=list)
    certifications: list[str] = field(default_factory=list)
    year_min: Optional[int] = None
    year_max: Optional[int] = None
    listing_types: list[ListingType] = field(default_factory=list)
    in_stock: bool = False


@dataclass
class FacetBucket:
    value: str
    label: str
    count: int


@dataclass
class SearchFacets:
    categories: list[FacetBucket] = field(default_factory=list)
    metal_types: list[FacetBucket] = field(default_factory=list)
    grades: list[FacetBucket] = field(default_factory=list)
    certifications: list[FacetBucket] = field(default_factory=list)
    price_ranges: list[FacetBucket] = field(default_factory=list)
    years: list[FacetBucket] = field(default_factory=list)


@dataclass
class SearchResult:
    products: list[Product]
    total: int
    page: int
    page_size: int
    total_pages: int
    facets: SearchFacets


def build_conditions(filters: SearchFilters, include_categories: bool = True) -> list[Any]:
    """Translate filters into WHERE conditions (active products only)."""
    conditions: list[Any] = [Product.status == ProductStatus.ACTIVE]

    if filters.query:
        pattern = f"%{filters.query.strip()}%"
        conditions.append(
            or_(
                Product.title.ilike(pattern),
                Product.description.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.grade.ilike(pattern),
                Product.certification.ilike(pattern),
            )
        )
    if include_categories and filters.categories:
        conditions.append(Product.category_id.in_(filters.categories))
    if filters.min_price is not None:
        conditions.append(Product.price >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Product.price <= filters.max_price)
    if filters.metal_types:
        conditions.append(Product.metal_type.in_(filters.metal_types))
    if filters.grades:
        conditions.append(Product.grade.in_(filters.grades))
    if filters.certifications:
        conditions.append(Product.certification.in_(filters.certifications))
    if filters.year_min is not None:
        conditions.append(Product.year >= filters.year_min)
    if filters.year_max is not None:
        conditions.append(Product.year <= filters.year_max)
    if filters.listing_types:
        conditions.append(Product.listing_type.in_(filters.listing_types))
    if filters.in_stock:
        conditions.append(Product.quantity > 0)

    return conditions


def _order_by(sort: str, direction: str) -> list[Any]:
    descending = direction != "asc"

    def ordered(column):
        return column.desc() if descending else column.asc()

    if sort == "price":
        return [ordered(Product.price)]
    if sort == "created_at":
        return [ordered(Product.created_at)]
    if sort == "views":
        return [ordered(Product.views)]
    if sort == "end_time":
        return [ordered(Auction.end_time)]
    # relevance: featured first, then popularity, then newest
    return [Product.featured.desc(), Product.views.desc(), Product.created_at.desc()]


def _label_metal(value: Optional[MetalType]) -> str:
    if value is None:
        return "Unknown"
    return value.value.capitalize()


async def search_products(
    db: AsyncSession,
    filters: SearchFilters,
    sort: str = "relevance",
    direction: str = "desc",
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> SearchResult:
    """
    Search active products.

    Args:
        sort: relevance | price | created_at | views | end_time
        direction: asc | desc (ignored for relevance)
        page_size: capped at 100
    """
    page = max(page, 1)
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))
    conditions = build_conditions(filters)

    total = (
        await db.execute(select(func.count()).select_from(Product).where(*conditions))
    ).scalar() or 0

    query = select(Product).where(*conditions)
    if sort == "end_time":
        query = query.outerjoin(
            Auction,
            and_(Auction.product_id == Product.id, Auction.status == AuctionStatus.ACTIVE),
        )
    query = (
        query.options(selectinload(Product.images), selectinload(Product.category))
        .order_by(*_order_by(sort, direction))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    products = list(result.scalars().unique().all())

    facets = await compute_facets(db, filters)

    return SearchResult(
        products=products,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
        facets=facets,
    )


async def compute_facets(db: AsyncSession, filters: SearchFilters) -> SearchFacets:
    """
    Facet counts for the current filters.

    Category counts ignore the category filter so the sidebar keeps showing
    the sibling categories.
    """
    base = build_conditions(filters, include_categories=False)
    scoped = build_conditions(filters)
    facets = SearchFacets()

    rows = await db.execute(
        select(Category.id, Category.name, func.count(Product.id))
        .join(Product, Product.category_id == Category.id)
        .where(*base)
        .group_by(Category.id, Category.name)
        .order_by(func.count(Product.id).desc())
    )
    facets.categories = [
        FacetBucket(value=str(cid), label=name, count=count) for cid, name, count in rows.all()
    ]

    rows = await db.execute(
        select(Product.metal_type, func.count(Product.id))
        .where(*scoped, Product.metal_type.is_not(None))
        .group_by(Product.metal_type)
    )
    facets.metal_types = [
        FacetBucket(value=metal.value, label=_label_metal(metal), count=count)
        for metal, count in rows.all()
    ]

    rows = await db.execute(
        select(Product.grade, func.count(Product.id))
        .where(*scoped, Product.grade.is_not(None))
        .group_by(Product.grade)
        .order_by(func.count(Product.id).desc())
        .limit(20)
    )
    facets.grades = [FacetBucket(value=g, label=g, count=c) for g, c in rows.all()]

    rows = await db.execute(
        select(Product.certification, func.count(Product.id))
        .where(*scoped, Product.certification.is_not(None))
        .group_by(Product.certification)
    )
    facets.certifications = [FacetBucket(value=c, label=c, count=n) for c, n in rows.all()]

    rows = await db.execute(
        select(Product.year, func.count(Product.id))
        .where(*scoped, Product.year.is_not(None))
        .group_by(Product.year)
        .order_by(Product.year.desc())
        .limit(50)
    )
    facets.years = [FacetBucket(value=str(y), label=str(y), count=c) for y, c in rows.all()]

    facets.price_ranges = await _price_range_facets(db, scoped)
    return facets


async def _price_range_facets(db: AsyncSession, conditions: list[Any]) -> list[FacetBucket]:
    low, high = (
        await db.execute(select(func.min(Product.price), func.max(Product.price)).where(*conditions))
    ).one()
    if low is None or high is None:
        return []
    low, high = Decimal(str(low)), Decimal(str(high))

    buckets = []
    for bucket_min, bucket_max, label in PRICE_BUCKETS:
        if bucket_min > high or (bucket_max is not None and bucket_max < low):
            continue
        bucket_conditions = [*conditions, Product.price >= bucket_min]
        if bucket_max is not None:
            bucket_conditions.append(Product.price < bucket_max)
        count = (
            await db.execute(select(func.count()).select_from(Product).where(*bucket_conditions))
        ).scalar() or 0
        value = f"{bucket_min}-{bucket_max if bucket_max is not None else ''}"
        buckets.append(FacetBucket(value=value, label=label, count=count))
    return buckets


async def get_trending_searches(db: AsyncSession, limit: int = 8) -> list[str]:
    """First four words of the most viewed active product titles."""
    result = await db.execute(
        select(Product.title)
        .where(Product.status == ProductStatus.ACTIVE)
        .order_by(Product.views.desc())
        .limit(limit)
    )
    return [" ".join(title.split()[:4]) for title in result.scalars().all()]


async def get_search_suggestions(db: AsyncSession, query: str, limit: int = 10) -> list[str]:
    """Autocomplete: trending terms for short queries, else matching titles."""
    query = (query or "").strip()
    if len(query) < 2:
        return await get_trending_searches(db)

    pattern = f"%{query}%"
    result = await db.execute(
        select(Product.title, func.max(Product.views).label("views"))
        .where(
            Product.status == ProductStatus.ACTIVE,
            or_(Product.title.ilike(pattern), Product.grade.ilike(pattern)),
        )
        .group_by(Product.title)
        .order_by(func.max(Product.views).desc())
        .limit(limit)
    )
    return [row.title for row in result.all()]
