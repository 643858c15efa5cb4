"""
CoinShop - Order Service

Order creation (checkout and auction wins), listing and fulfillment status
updates.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.clock import utcnow
from coinshop.core.exceptions import NotFoundError, PermissionDeniedError
from coinshop.models.order import Order, OrderItem, OrderStatus
from coinshop.models.product import Product
from coinshop.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class LineItem:
    """A product and the price it is being sold at."""

    product: Product
    price: Decimal
    quantity: int = 1


def generate_order_number(now: Optional[datetime] = None) -> str:
    """Human-readable order number, e.g. ``CS-20250114-3FA9C1``."""
    now = now or utcnow()
    return f"CS-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


async def create_order(
    db: AsyncSession,
    user_id: UUID,
    items: list[LineItem],
    status: OrderStatus = OrderStatus.PENDING,
    auction_id: Optional[UUID] = None,
    winning_bid_id: Optional[UUID] = None,
) -> Order:
    """
    Create an order with one item per line.

    Args:
        db: Database session
        user_id: Buyer
        items: Products and their sale prices
        status: Initial status
        auction_id: Auction the order settles, if any
        winning_bid_id: Bid that won the auction (unique across orders)

    Returns:
        The flushed Order
    """
    subtotal = sum((item.price * item.quantity for item in items), Decimal("0"))
    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        status=status,
        subtotal=subtotal,
        shipping=Decimal("0"),
        tax=Decimal("0"),
        total=subtotal,
        auction_id=auction_id,
        winning_bid_id=winning_bid_id,
    )
    order.items = [
        OrderItem(
            product_id=item.product.id,
            quantity=item.quantity,
            price=item.price,
            title=item.product.title,
        )
        for item in items
    ]
    db.add(order)
    await db.flush()

    logger.info(f"Created order {order.order_number} for user {user_id} (total={subtotal})")
    return order


async def get_order(db: AsyncSession, order_id: UUID, user: User) -> Order:
    """
    Get an order with its items.

    Buyers may only read their own orders; staff may read any.
    """
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != user.id and not user.is_staff:
        raise PermissionDeniedError("You can only view your own orders")
    return order


async def list_orders(
    db: AsyncSession,
    user: User,
    status: Optional[OrderStatus] = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Order], int]:
    """List orders newest first: all orders for staff, own orders otherwise."""
    query = select(Order)
    count_query = select(func.count()).select_from(Order)

    if not user.is_staff:
        query = query.where(Order.user_id == user.id)
        count_query = count_query.where(Order.user_id == user.id)
    if status is not None:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.options(selectinload(Order.items))
        .order_by(Order.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def update_order_status(
    db: AsyncSession,
    order_id: UUID,
    status: OrderStatus,
    tracking_number: Optional[str] = None,
) -> Order:
    """Set an order's fulfillment status, stamping shipped/delivered times."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")

    now = utcnow()
    order.status = status
    if tracking_number:
        order.tracking_number = tracking_number
    if status == OrderStatus.SHIPPED and order.shipped_at is None:
        order.shipped_at = now
    if status == OrderStatus.DELIVERED:
        if order.shipped_at is None:
            order.shipped_at = now
        order.delivered_at = now

    await db.flush()
    logger.info(f"Order {order.order_number} -> {status.value}")
    return order
