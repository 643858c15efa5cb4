"""
CoinShop - Order and Checkout Schemas
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.models.order import OrderStatus
from coinshop.schemas.common import PaginationMeta


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    title: str
    quantity: int
    price: float


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    user_id: UUID
    status: OrderStatus
    subtotal: float
    shipping: float
    tax: float
    total: float
    auction_id: Optional[UUID] = None
    winning_bid_id: Optional[UUID] = None
    tracking_number: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    items: list[OrderItemResponse] = Field(default_factory=list)
    created_at: datetime


class OrderListResponse(BaseModel):
    data: list[OrderResponse]
    meta: PaginationMeta


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)


# =============================================================================
# Checkout
# =============================================================================


class CheckoutItem(BaseModel):
    product_id: UUID
    quantity: int = Field(1, ge=1)


class CheckoutRequest(BaseModel):
    items: list[CheckoutItem]


class CheckoutResponse(BaseModel):
    url: str
    order_id: UUID
    order_number: str
