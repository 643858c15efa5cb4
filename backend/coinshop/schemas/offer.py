"""
CoinShop - Offer Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.models.offer import OfferStatus


class OfferCreate(BaseModel):
    product_id: UUID
    amount: Decimal = Field(..., gt=0)
    message: Optional[str] = Field(None, max_length=2000)
    expires_in_hours: Optional[int] = None


class OfferAction(BaseModel):
    """
    One action on an offer.

    ``accept``, ``decline`` and ``counter`` are the seller's; ``accept-counter``
    and ``withdraw`` are the buyer's. ``amount`` is required for ``counter``.
    """

    action: Literal["accept", "decline", "counter", "accept-counter", "withdraw"]
    amount: Optional[Decimal] = Field(None, gt=0)
    message: Optional[str] = Field(None, max_length=2000)
    expires_in_hours: Optional[int] = None


class OfferProduct(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    price: Optional[float] = None
    image_url: Optional[str] = None


class OfferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    buyer_id: UUID
    seller_client_id: Optional[UUID] = None
    amount: float
    message: Optional[str] = None
    status: OfferStatus
    expires_at: datetime
    counter_amount: Optional[float] = None
    counter_message: Optional[str] = None
    counter_expires_at: Optional[datetime] = None
    order_id: Optional[UUID] = None
    product: Optional[OfferProduct] = None
    created_at: datetime


class OfferListResponse(BaseModel):
    offers: list[OfferResponse]
    total: int
