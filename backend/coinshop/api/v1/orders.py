"""
CoinShop API - Order and Checkout Endpoints
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_current_user_or_api_key, get_payment_gateway, require_staff
from coinshop.core.database import get_db
from coinshop.models.order import OrderStatus
from coinshop.models.user import User
from coinshop.schemas.common import PaginationMeta
from coinshop.schemas.order import (
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from coinshop.services.checkout import CartItem, PaymentGateway, create_checkout
from coinshop.services.orders import get_order, list_orders, update_order_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


@router.get("/orders", response_model=OrderListResponse)
async def get_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Own orders for buyers; all orders for staff."""
    orders, total = await list_orders(
        db, user, status=order_status, page=page, per_page=per_page
    )
    return OrderListResponse(
        data=[OrderResponse.model_validate(o) for o in orders],
        meta=PaginationMeta.create(page=page, per_page=per_page, total=total),
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order_detail(
    order_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    order = await get_order(db, order_id, user)
    return OrderResponse.model_validate(order)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def set_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    order = await update_order_status(
        db, order_id, data.status, tracking_number=data.tracking_number
    )
    return OrderResponse.model_validate(order)


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    data: CheckoutRequest,
    user: User = Depends(get_current_user_or_api_key),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Open a pending order for the cart and return the payment page URL.

    Answers 503 when no payment provider is configured.
    """
    session = await create_checkout(
        db,
        user,
        [CartItem(product_id=item.product_id, quantity=item.quantity) for item in data.items],
        gateway,
    )
    return CheckoutResponse(
        url=session.url,
        order_id=session.order.id,
        order_number=session.order.order_number,
    )
