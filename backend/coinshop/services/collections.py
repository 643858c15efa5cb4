"""
CoinShop - Collection Service

Buyers keep named collections of shop products and of pieces bought
elsewhere, with their own valuations. Collections are private unless
marked public; only the owner sees the value stats.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.clock import utcnow
from coinshop.core.exceptions import ConflictError, NotFoundError, ValidationError
from coinshop.models.collection import Collection, CollectionItem
from coinshop.models.product import Category, Product
from coinshop.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class CustomItem:
    """A piece that is not a shop product."""

    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    acquired_price: Optional[Decimal] = None
    acquired_date: Optional[date] = None
    current_value: Optional[Decimal] = None
    image_urls: Optional[list[str]] = None
    attributes: Optional[dict[str, Any]] = None


@dataclass
class CollectionStats:
    total_items: int
    total_value: Decimal
    total_acquired_cost: Decimal
    estimated_profit: Optional[Decimal]
    items_with_value: int
    average_value: Decimal


@dataclass
class CollectionMembership:
    collection_id: UUID
    name: str
    has_product: bool


def _with_items():
    return selectinload(Collection.items).selectinload(CollectionItem.product).selectinload(Product.images)


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Collection name is required")
    return name


async def _owned_collection(db: AsyncSession, user: User, collection_id: UUID) -> Collection:
    result = await db.execute(
        select(Collection)
        .where(Collection.id == collection_id, Collection.user_id == user.id)
        .options(_with_items())
        .execution_options(populate_existing=True)
    )
    collection = result.scalar_one_or_none()
    if collection is None:
        raise NotFoundError("Collection not found")
    return collection


async def _owned_item(
    db: AsyncSession, user: User, item_id: UUID, collection_id: Optional[UUID] = None
) -> CollectionItem:
    query = (
        select(CollectionItem)
        .join(Collection, Collection.id == CollectionItem.collection_id)
        .where(CollectionItem.id == item_id, Collection.user_id == user.id)
    )
    if collection_id is not None:
        query = query.where(CollectionItem.collection_id == collection_id)
    result = await db.execute(
        query.options(selectinload(CollectionItem.product).selectinload(Product.images))
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Collection item not found")
    return item


async def _touch(db: AsyncSession, collection_id: UUID) -> None:
    collection = await db.get(Collection, collection_id)
    if collection is not None:
        collection.updated_at = utcnow()


# =============================================================================
# Collections
# =============================================================================


async def list_user_collections(db: AsyncSession, user: User) -> list[Collection]:
    """The user's collections, most recently changed first."""
    result = await db.execute(
        select(Collection)
        .where(Collection.user_id == user.id)
        .options(_with_items())
        .order_by(Collection.updated_at.desc())
    )
    return list(result.scalars().all())


async def list_public_collections(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 12,
    category: Optional[str] = None,
) -> tuple[list[Collection], int]:
    """
    Public collections for discovery.

    ``category`` matches a custom item's category or the slug of a shop
    product's category.
    """
    query = select(Collection).where(Collection.is_public.is_(True))
    if category:
        category_ids = select(Category.id).where(Category.slug == category)
        matching = (
            select(CollectionItem.collection_id)
            .outerjoin(Product, Product.id == CollectionItem.product_id)
            .where(
                or_(
                    CollectionItem.custom_category == category,
                    Product.category_id.in_(category_ids),
                )
            )
        )
        query = query.where(Collection.id.in_(matching))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.options(_with_items(), selectinload(Collection.user))
        .order_by(Collection.updated_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_collection(
    db: AsyncSession,
    collection_id: UUID,
    viewer: Optional[User] = None,
) -> Collection:
    """
    A collection with its items.

    Private collections read as missing to everyone but their owner.
    """
    result = await db.execute(
        select(Collection)
        .where(Collection.id == collection_id)
        .options(_with_items(), selectinload(Collection.user))
        .execution_options(populate_existing=True)
    )
    collection = result.scalar_one_or_none()
    if collection is None:
        raise NotFoundError("Collection not found")
    if not collection.is_public and (viewer is None or viewer.id != collection.user_id):
        raise NotFoundError("Collection not found")
    return collection


async def create_collection(
    db: AsyncSession,
    user: User,
    name: str,
    description: Optional[str] = None,
    is_public: bool = False,
) -> Collection:
    collection = Collection(
        user_id=user.id,
        name=_clean_name(name),
        description=description.strip() if description else None,
        is_public=is_public,
    )
    db.add(collection)
    await db.flush()

    logger.info(f"Collection {collection.id} created by {user.id}")
    return await _owned_collection(db, user, collection.id)


async def update_collection(
    db: AsyncSession,
    user: User,
    collection_id: UUID,
    name: Optional[str] = None,
    description: Optional[str] = None,
    is_public: Optional[bool] = None,
) -> Collection:
    """Change the fields that were given; others are left alone."""
    collection = await _owned_collection(db, user, collection_id)
    if name is not None:
        collection.name = _clean_name(name)
    if description is not None:
        collection.description = description.strip() or None
    if is_public is not None:
        collection.is_public = is_public
    collection.updated_at = utcnow()
    await db.flush()
    return collection


async def delete_collection(db: AsyncSession, user: User, collection_id: UUID) -> None:
    collection = await _owned_collection(db, user, collection_id)
    await db.delete(collection)
    await db.flush()
    logger.info(f"Collection {collection_id} deleted by {user.id}")


# =============================================================================
# Items
# =============================================================================


async def add_item(
    db: AsyncSession,
    user: User,
    collection_id: UUID,
    product_id: Optional[UUID] = None,
    custom: Optional[CustomItem] = None,
) -> CollectionItem:
    """
    Add a shop product or a custom piece to one of the user's collections.

    Raises:
        NotFoundError: unknown collection (or not the user's) or product
        ValidationError: neither a product nor a titled custom piece given
        ConflictError: the product is already in the collection
    """
    await _owned_collection(db, user, collection_id)

    if product_id is None and (custom is None or not custom.title.strip()):
        raise ValidationError("Either a product or a custom item title is required")

    if product_id is not None:
        if await db.get(Product, product_id) is None:
            raise NotFoundError("Product not found")
        existing = await db.execute(
            select(CollectionItem.id).where(
                CollectionItem.collection_id == collection_id,
                CollectionItem.product_id == product_id,
            )
        )
        if existing.first() is not None:
            raise ConflictError("Item already in collection", code="duplicate_item")

    custom = custom or CustomItem(title="")
    item = CollectionItem(
        collection_id=collection_id,
        product_id=product_id,
        custom_title=custom.title.strip() or None,
        custom_description=custom.description,
        custom_category=custom.category,
        purchase_price=custom.acquired_price,
        purchase_date=custom.acquired_date,
        current_value=custom.current_value,
        custom_images=list(custom.image_urls or []),
        attributes=custom.attributes,
    )
    db.add(item)
    try:
        await db.flush()
    except IntegrityError as e:
        raise ConflictError("Item already in collection", code="duplicate_item", cause=e)
    await _touch(db, collection_id)

    return await _owned_item(db, user, item.id)


async def update_item(
    db: AsyncSession,
    user: User,
    item_id: UUID,
    current_value: Optional[Decimal] = None,
    custom_description: Optional[str] = None,
    attributes: Optional[dict[str, Any]] = None,
    collection_id: Optional[UUID] = None,
) -> CollectionItem:
    item = await _owned_item(db, user, item_id, collection_id)
    if current_value is not None:
        if current_value < 0:
            raise ValidationError("Current value cannot be negative")
        item.current_value = current_value
    if custom_description is not None:
        item.custom_description = custom_description
    if attributes is not None:
        item.attributes = attributes
    await _touch(db, item.collection_id)
    await db.flush()
    return item


async def remove_item(
    db: AsyncSession, user: User, item_id: UUID, collection_id: Optional[UUID] = None
) -> None:
    item = await _owned_item(db, user, item_id, collection_id)
    await _touch(db, item.collection_id)
    await db.delete(item)
    await db.flush()


# =============================================================================
# Stats
# =============================================================================


def collection_stats(collection: Collection) -> CollectionStats:
    """
    Value totals over a loaded collection.

    An item's value is the owner's ``current_value`` or else the shop price.
    Profit is only estimated when some acquisition cost is known.
    """
    total_value = Decimal("0")
    total_cost = Decimal("0")
    items_with_value = 0

    for item in collection.items:
        value = item.value
        if value:
            total_value += value
            items_with_value += 1
        if item.purchase_price:
            total_cost += item.purchase_price

    average = total_value / items_with_value if items_with_value else Decimal("0")
    return CollectionStats(
        total_items=len(collection.items),
        total_value=total_value,
        total_acquired_cost=total_cost,
        estimated_profit=total_value - total_cost if total_cost > 0 else None,
        items_with_value=items_with_value,
        average_value=average.quantize(Decimal("0.01")),
    )


async def product_membership(db: AsyncSession, user: User, product_id: UUID) -> list[CollectionMembership]:
    """Which of the user's collections hold ``product_id``."""
    holding = select(CollectionItem.collection_id).where(CollectionItem.product_id == product_id)
    result = await db.execute(
        select(Collection.id, Collection.name, Collection.id.in_(holding))
        .where(Collection.user_id == user.id)
        .order_by(Collection.name)
    )
    return [
        CollectionMembership(collection_id=row[0], name=row[1], has_product=bool(row[2]))
        for row in result.all()
    ]
