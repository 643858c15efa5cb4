"""
CoinShop - Marketplace Integration Schemas
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.models.integration import ListingStatus, Platform


class AuthorizationUrlResponse(BaseModel):
    platform: Platform
    url: str


class OAuthCallback(BaseModel):
    code: str = Field(..., min_length=1)
    state: Optional[str] = None


class ConnectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    platform: Platform
    account_name: Optional[str] = None
    expires_at: Optional[datetime] = None
    expired: bool = False


class ListingCreate(BaseModel):
    product_id: UUID
    options: dict[str, Any] = Field(default_factory=dict)


class ListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    platform: Platform
    external_id: str
    url: Optional[str] = None
    status: ListingStatus
    created_at: datetime
    ended_at: Optional[datetime] = None


class ListingCreateResponse(BaseModel):
    listing: ListingResponse
    warnings: list[str] = Field(default_factory=list)
