"""
CoinShop - Product Schemas

Pydantic schemas for catalog and price history API request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.models.product import ListingType, MetalType, ProductStatus
from coinshop.schemas.common import PaginationMeta


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    sort_order: int = 0


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    sort_order: int


class ProductImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    url: str
    alt: Optional[str] = None
    sort_order: int
    is_primary: bool


class ProductBase(BaseModel):
    """Fields shared by create and response."""

    sku: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    short_description: Optional[str] = Field(None, max_length=500)
    category_id: Optional[UUID] = None
    listing_type: ListingType = ListingType.BUY_NOW
    price: Optional[Decimal] = Field(None, ge=0)
    metal_type: Optional[MetalType] = None
    metal_weight: Optional[Decimal] = Field(None, ge=0, description="Troy ounces")
    metal_purity: Optional[Decimal] = Field(None, ge=0, le=1)
    year: Optional[int] = Field(None, ge=1, le=3000)
    mint: Optional[str] = Field(None, max_length=50)
    grade: Optional[str] = Field(None, max_length=50)
    certification: Optional[str] = Field(None, max_length=50)
    cert_number: Optional[str] = Field(None, max_length=100)
    quantity: int = Field(1, ge=0)
    featured: bool = False


class ProductCreate(ProductBase):
    status: ProductStatus = ProductStatus.DRAFT
    cost_basis: Optional[Decimal] = Field(None, ge=0)
    client_id: Optional[UUID] = None
    image_urls: list[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    """Schema for updating a Product (all fields optional)."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    category_id: Optional[UUID] = None
    listing_type: Optional[ListingType] = None
    price: Optional[Decimal] = Field(None, ge=0)
    cost_basis: Optional[Decimal] = Field(None, ge=0)
    grade: Optional[str] = Field(None, max_length=50)
    certification: Optional[str] = Field(None, max_length=50)
    cert_number: Optional[str] = Field(None, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)
    status: Optional[ProductStatus] = None
    featured: Optional[bool] = None
    price_reason: Optional[str] = Field(
        None, max_length=50, description="Recorded on the price history entry"
    )


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sku: str
    title: str
    description: str
    short_description: Optional[str] = None
    category_id: Optional[UUID] = None
    listing_type: ListingType
    price: Optional[float] = None
    metal_type: Optional[MetalType] = None
    metal_weight: Optional[float] = None
    metal_purity: Optional[float] = None
    year: Optional[int] = None
    mint: Optional[str] = None
    grade: Optional[str] = None
    certification: Optional[str] = None
    cert_number: Optional[str] = None
    quantity: int
    status: ProductStatus
    client_id: Optional[UUID] = None
    is_consignment: bool
    featured: bool
    views: int
    images: list[ProductImageResponse] = Field(default_factory=list)
    created_at: datetime


class ProductListResponse(BaseModel):
    data: list[ProductResponse]
    meta: PaginationMeta


# =============================================================================
# Price history
# =============================================================================


class PricePointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: datetime
    price: float
    source: str


class PriceStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current: float
    high: float
    low: float
    average: float
    change: float
    change_percent: float
    trend: str


class PriceHistoryResponse(BaseModel):
    product_id: UUID
    period: str
    history: list[PricePointResponse]
    stats: Optional[PriceStatsResponse] = None
