"""
CoinShop API - Catalog Endpoints

Categories, product CRUD (staff) and price history.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_optional_user, require_staff
from coinshop.core.database import get_db
from coinshop.core.exceptions import NotFoundError
from coinshop.models.product import ProductStatus
from coinshop.models.user import User
from coinshop.schemas.common import PaginationMeta
from coinshop.schemas.product import (
    CategoryCreate,
    CategoryResponse,
    PriceHistoryResponse,
    PricePointResponse,
    PriceStatsResponse,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from coinshop.services.catalog import (
    archive_product,
    create_category,
    create_product,
    get_product,
    list_categories,
    list_products,
    update_product,
)
from coinshop.services.price_history import get_price_history

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])

# Statuses the public storefront may open directly
PUBLIC_STATUSES = {ProductStatus.ACTIVE, ProductStatus.SOLD, ProductStatus.RESERVED}


# =============================================================================
# Categories
# =============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def get_categories(db: AsyncSession = Depends(get_db)):
    categories = await list_categories(db)
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def add_category(
    data: CategoryCreate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    category = await create_category(
        db,
        name=data.name,
        description=data.description,
        parent_id=data.parent_id,
        sort_order=data.sort_order,
    )
    return CategoryResponse.model_validate(category)


# =============================================================================
# Products
# =============================================================================


@router.get("/products", response_model=ProductListResponse)
async def get_products(
    product_status: Optional[ProductStatus] = Query(None, alias="status"),
    client_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Back-office product listing (all statuses). Shoppers use /search."""
    products, total = await list_products(
        db, status=product_status, client_id=client_id, page=page, per_page=per_page
    )
    return ProductListResponse(
        data=[ProductResponse.model_validate(p) for p in products],
        meta=PaginationMeta.create(page=page, per_page=per_page, total=total),
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product_detail(
    product_id: UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Product detail; counts a view. Drafts and archived items are staff-only."""
    is_staff = viewer is not None and viewer.is_staff
    product = await get_product(db, product_id, count_view=not is_staff)
    if not is_staff and product.status not in PUBLIC_STATUSES:
        raise NotFoundError("Product not found")
    return ProductResponse.model_validate(product)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def add_product(
    data: ProductCreate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    fields = data.model_dump(exclude={"image_urls"})
    product = await create_product(db, fields, image_urls=data.image_urls)
    logger.info(f"Product {product.sku} created by {user.email}")
    return ProductResponse.model_validate(product)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def edit_product(
    product_id: UUID,
    data: ProductUpdate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Update fields; a price change is recorded in the price history."""
    changes = data.model_dump(exclude_unset=True, exclude={"price_reason"})
    product = await update_product(
        db, product_id, changes, price_reason=data.price_reason or "manual"
    )
    return ProductResponse.model_validate(product)


@router.delete("/products/{product_id}", response_model=ProductResponse)
async def remove_product(
    product_id: UUID,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Archive a product. Orders and history keep referencing it."""
    product = await archive_product(db, product_id)
    return ProductResponse.model_validate(product)


@router.get("/products/{product_id}/price-history", response_model=PriceHistoryResponse)
async def product_price_history(
    product_id: UUID,
    period: str = Query("90d", description="7d, 30d, 90d, 1y or all"),
    db: AsyncSession = Depends(get_db),
):
    points, stats = await get_price_history(db, product_id, period=period)
    return PriceHistoryResponse(
        product_id=product_id,
        period=period,
        history=[PricePointResponse.model_validate(p) for p in points],
        stats=PriceStatsResponse.model_validate(stats) if stats else None,
    )
