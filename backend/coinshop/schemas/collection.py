"""
CoinShop - Collection Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.schemas.common import PaginationMeta


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    is_public: bool = False


class CollectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    is_public: Optional[bool] = None


class CustomItemIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    acquired_price: Optional[Decimal] = Field(None, ge=0)
    acquired_date: Optional[date] = None
    current_value: Optional[Decimal] = Field(None, ge=0)
    image_urls: list[str] = Field(default_factory=list)
    attributes: Optional[dict[str, Any]] = None


class CollectionItemCreate(BaseModel):
    """Either ``product_id`` or ``custom_item``."""

    product_id: Optional[UUID] = None
    custom_item: Optional[CustomItemIn] = None


class CollectionItemUpdate(BaseModel):
    current_value: Optional[Decimal] = Field(None, ge=0)
    custom_description: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None


class CollectionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    collection_id: UUID
    product_id: Optional[UUID] = None
    title: str
    custom_description: Optional[str] = None
    custom_category: Optional[str] = None
    custom_images: list[str] = Field(default_factory=list)
    purchase_price: Optional[float] = None
    purchase_date: Optional[date] = None
    current_value: Optional[float] = None
    value: Optional[float] = None
    attributes: Optional[dict[str, Any]] = None
    created_at: datetime


class CollectionStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_items: int
    total_value: float
    total_acquired_cost: float
    estimated_profit: Optional[float] = None
    items_with_value: int
    average_value: float


class CollectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    is_public: bool
    item_count: int = 0
    items: list[CollectionItemResponse] = Field(default_factory=list)
    stats: Optional[CollectionStatsResponse] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class CollectionListResponse(BaseModel):
    collections: list[CollectionResponse]


class PublicCollectionListResponse(BaseModel):
    data: list[CollectionResponse]
    meta: PaginationMeta


class CollectionMembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    collection_id: UUID
    name: str
    has_product: bool
