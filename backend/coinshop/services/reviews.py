"""
CoinShop - Seller Review Service

Buyers rate the consignor behind a delivered order, once per order.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.exceptions import (
    DuplicateReviewError,
    NotFoundError,
    PermissionDeniedError,
    ReviewError,
    ValidationError,
)
from coinshop.models.client import Client
from coinshop.models.order import Order, OrderItem, OrderStatus
from coinshop.models.product import Product
from coinshop.models.review import SellerReview
from coinshop.models.user import User

logger = logging.getLogger(__name__)

RATING_FIELDS = ("overall_rating", "item_as_described", "shipping_speed", "communication")


@dataclass
class RatingSummary:
    seller_id: UUID
    total_reviews: int = 0
    average_rating: float = 0.0
    average_item_as_described: float = 0.0
    average_shipping_speed: float = 0.0
    average_communication: float = 0.0
    distribution: dict[int, int] = field(default_factory=lambda: {i: 0 for i in range(1, 6)})


def _validate_rating(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 5:
        raise ValidationError(f"{name} must be between 1 and 5", details={"field": name})
    return value


async def _seller_for_order(db: AsyncSession, order_id: UUID) -> Optional[UUID]:
    """Consignment client owning the first product on the order."""
    result = await db.execute(
        select(Product.client_id)
        .join(OrderItem, OrderItem.product_id == Product.id)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_review(
    db: AsyncSession,
    reviewer: User,
    order_id: UUID,
    overall_rating: int,
    item_as_described: int,
    shipping_speed: int,
    communication: int,
    comment: Optional[str] = None,
) -> SellerReview:
    """
    Create a review for a delivered order.

    Raises:
        NotFoundError: unknown order
        PermissionDeniedError: reviewer did not place the order
        ValidationError: order not delivered, no seller, or rating out of range
        DuplicateReviewError: order already reviewed
    """
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != reviewer.id:
        raise PermissionDeniedError("You can only review your own orders")
    if order.status != OrderStatus.DELIVERED:
        raise ReviewError("Can only review delivered orders", code="order_not_delivered")

    ratings = {
        "overall_rating": _validate_rating("overall_rating", overall_rating),
        "item_as_described": _validate_rating("item_as_described", item_as_described),
        "shipping_speed": _validate_rating("shipping_speed", shipping_speed),
        "communication": _validate_rating("communication", communication),
    }

    existing = await db.execute(select(SellerReview.id).where(SellerReview.order_id == order_id))
    if existing.first() is not None:
        raise DuplicateReviewError("You have already reviewed this order")

    seller_id = await _seller_for_order(db, order_id)
    if seller_id is None:
        raise ReviewError("Order has no seller to review", code="no_seller")

    review = SellerReview(
        seller_id=seller_id,
        reviewer_id=reviewer.id,
        order_id=order_id,
        comment=comment,
        **ratings,
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError as e:
        # Concurrent review of the same order lost on the unique constraint
        raise DuplicateReviewError("You have already reviewed this order", cause=e)

    logger.info(f"Review {review.id} created for seller {seller_id} (order {order_id})")
    return review


async def get_seller_reviews(
    db: AsyncSession,
    seller_id: UUID,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[SellerReview], int]:
    """Reviews for a seller, newest first, with reviewer loaded."""
    total = (
        await db.execute(
            select(func.count()).select_from(SellerReview).where(SellerReview.seller_id == seller_id)
        )
    ).scalar() or 0

    result = await db.execute(
        select(SellerReview)
        .where(SellerReview.seller_id == seller_id)
        .options(selectinload(SellerReview.reviewer))
        .order_by(SellerReview.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_seller_rating_summary(db: AsyncSession, seller_id: UUID) -> RatingSummary:
    """Averages per rating dimension and the 1-5 star distribution."""
    if await db.get(Client, seller_id) is None:
        raise NotFoundError("Seller not found")

    row = (
        await db.execute(
            select(
                func.count(SellerReview.id),
                func.avg(SellerReview.overall_rating),
                func.avg(SellerReview.item_as_described),
                func.avg(SellerReview.shipping_speed),
                func.avg(SellerReview.communication),
            ).where(SellerReview.seller_id == seller_id)
        )
    ).one()

    summary = RatingSummary(seller_id=seller_id)
    total = row[0] or 0
    if total == 0:
        return summary

    summary.total_reviews = total
    summary.average_rating = round(float(row[1]), 2)
    summary.average_item_as_described = round(float(row[2]), 2)
    summary.average_shipping_speed = round(float(row[3]), 2)
    summary.average_communication = round(float(row[4]), 2)

    dist = await db.execute(
        select(SellerReview.overall_rating, func.count(SellerReview.id))
        .where(SellerReview.seller_id == seller_id)
        .group_by(SellerReview.overall_rating)
    )
    for rating, count in dist.all():
        summary.distribution[int(rating)] = count

    return summary


async def get_pending_reviews(db: AsyncSession, user: User) -> list[Order]:
    """Delivered orders the user has not reviewed yet."""
    reviewed = select(SellerReview.order_id)
    result = await db.execute(
        select(Order)
        .where(
            Order.user_id == user.id,
            Order.status == OrderStatus.DELIVERED,
            Order.id.not_in(reviewed),
        )
        .options(selectinload(Order.items))
        .order_by(Order.delivered_at.desc())
    )
    return list(result.scalars().all())


async def mark_review_helpful(db: AsyncSession, review_id: UUID) -> int:
    """Increment a review's helpful counter; returns the new count."""
    result = await db.execute(
        update(SellerReview)
        .where(SellerReview.id == review_id)
        .values(helpful_count=SellerReview.helpful_count + 1)
        .returning(SellerReview.helpful_count)
        .execution_options(synchronize_session=False)
    )
    count = result.scalar_one_or_none()
    if count is None:
        raise NotFoundError("Review not found")
    return count
