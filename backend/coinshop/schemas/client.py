"""
CoinShop - Consignment Client Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from coinshop.models.client import ClientStatus, SourceType


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=512)
    commission_rate: Decimal = Field(Decimal("15.00"), ge=0, le=100)
    status: ClientStatus = ClientStatus.PENDING
    notes: Optional[str] = None


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=512)
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    status: Optional[ClientStatus] = None
    notes: Optional[str] = None


class SourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., description="Source type, e.g. website or ebay_store")
    url: str = Field(..., min_length=1, max_length=1024)
    is_active: bool = True
    scrape_frequency: Optional[int] = Field(None, ge=1, description="Minutes")
    selectors: Optional[dict[str, Any]] = None
    config: Optional[dict[str, Any]] = None


class SourceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = None
    url: Optional[str] = Field(None, min_length=1, max_length=1024)
    is_active: Optional[bool] = None
    scrape_frequency: Optional[int] = Field(None, ge=1)
    selectors: Optional[dict[str, Any]] = None
    config: Optional[dict[str, Any]] = None


class SourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    name: str
    type: SourceType
    url: str
    is_active: bool
    scrape_frequency: int
    selectors: Optional[dict[str, Any]] = None
    config: Optional[dict[str, Any]] = None
    last_scraped_at: Optional[datetime] = None
    last_item_count: int
    last_error: Optional[str] = None
    created_at: datetime


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    website: Optional[str] = None
    commission_rate: float
    status: ClientStatus
    notes: Optional[str] = None
    created_at: datetime


class ClientDetailResponse(ClientResponse):
    sources: list[SourceResponse] = Field(default_factory=list)


class ClientListItem(ClientResponse):
    product_count: int = 0


class ClientListResponse(BaseModel):
    data: list[ClientListItem]
    total: int
