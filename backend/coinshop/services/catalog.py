"""
CoinShop - Catalog Service

Category and product management for the storefront and admin dashboard.
"""

import logging
import re
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.exceptions import ConflictError, NotFoundError
from coinshop.models.product import (
    Category,
    PriceHistory,
    Product,
    ProductImage,
    ProductStatus,
)

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    """Lowercase, non-alphanumerics collapsed to ``-``, trimmed."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


async def list_categories(db: AsyncSession) -> list[Category]:
    result = await db.execute(select(Category).order_by(Category.sort_order, Category.name))
    return list(result.scalars().all())


async def create_category(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    parent_id: Optional[UUID] = None,
    sort_order: int = 0,
) -> Category:
    slug = slugify(name)
    existing = await db.execute(select(Category.id).where(Category.slug == slug))
    if existing.first() is not None:
        raise ConflictError(f"Category '{slug}' already exists")

    category = Category(
        name=name,
        slug=slug,
        description=description,
        parent_id=parent_id,
        sort_order=sort_order,
    )
    db.add(category)
    await db.flush()
    return category


async def get_product(db: AsyncSession, product_id: UUID, count_view: bool = False) -> Product:
    """Product with images and category; optionally bumps the view counter."""
    if count_view:
        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(views=Product.views + 1)
            .execution_options(synchronize_session=False)
        )

    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(selectinload(Product.images), selectinload(Product.category))
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def list_products(
    db: AsyncSession,
    status: Optional[ProductStatus] = None,
    client_id: Optional[UUID] = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[Product], int]:
    """Admin product listing, newest first."""
    conditions = []
    if status is not None:
        conditions.append(Product.status == status)
    if client_id is not None:
        conditions.append(Product.client_id == client_id)

    total = (
        await db.execute(select(func.count()).select_from(Product).where(*conditions))
    ).scalar() or 0
    result = await db.execute(
        select(Product)
        .where(*conditions)
        .options(selectinload(Product.images), selectinload(Product.category))
        .order_by(Product.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def create_product(
    db: AsyncSession,
    data: dict[str, Any],
    image_urls: Optional[list[str]] = None,
) -> Product:
    """
    Create a product and record its opening price.

    Raises:
        ConflictError: SKU already in use
    """
    product = Product(**data)
    if product.client_id is not None:
        product.is_consignment = True
    product.images = [
        ProductImage(url=url, sort_order=i, is_primary=(i == 0))
        for i, url in enumerate(image_urls or [])
    ]
    db.add(product)
    try:
        await db.flush()
    except IntegrityError as e:
        raise ConflictError(f"SKU '{data.get('sku')}' already exists", cause=e)

    if product.price is not None:
        db.add(PriceHistory(product_id=product.id, price=product.price, reason="initial"))
        await db.flush()

    logger.info(f"Created product {product.sku}")
    return await get_product(db, product.id)


async def update_product(
    db: AsyncSession,
    product_id: UUID,
    changes: dict[str, Any],
    price_reason: str = "manual",
) -> Product:
    """
    Apply field changes; a price change writes a PriceHistory row.
    """
    product = await get_product(db, product_id)

    new_price = changes.get("price")
    if new_price is not None and product.price != Decimal(str(new_price)):
        db.add(PriceHistory(product_id=product.id, price=new_price, reason=price_reason))

    for key, value in changes.items():
        setattr(product, key, value)
    await db.flush()

    return await get_product(db, product_id)


async def archive_product(db: AsyncSession, product_id: UUID) -> Product:
    product = await get_product(db, product_id)
    product.status = ProductStatus.ARCHIVED
    await db.flush()
    return product
