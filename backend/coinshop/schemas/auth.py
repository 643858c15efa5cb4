"""
CoinShop - Authentication Schemas

Pydantic models for authentication requests and responses.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# =============================================================================
# Request Schemas
# =============================================================================


class UserCreate(BaseModel):
    """Schema for buyer registration."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=100)
    name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


# =============================================================================
# Response Schemas
# =============================================================================


class UserInfo(BaseModel):
    """User summary embedded in the token response."""

    id: UUID
    email: str
    name: Optional[str] = None
    role: str
    client_id: Optional[UUID] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until expiration
    user: UserInfo


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: Optional[str] = None
    role: str
    client_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime


class ApiKeyInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    key_prefix: str
    created_at: datetime


class ApiKeyResponse(BaseModel):
    """Newly created API key.

    The `key` field is only returned once upon creation.
    """

    api_key: ApiKeyInfo
    key: str


class ApiKeyListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    key_prefix: str
    is_active: bool
    last_used_at: Optional[datetime]
    created_at: datetime


class ApiKeyListResponse(BaseModel):
    api_keys: list[ApiKeyListItem]
    total: int
