"""
CoinShop API - Authentication Endpoints

Buyer signup, login and API keys for bidding tools.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_current_user
from coinshop.core.database import get_db
from coinshop.models.user import User
from coinshop.schemas.auth import (
    ApiKeyCreate,
    ApiKeyInfo,
    ApiKeyListItem,
    ApiKeyListResponse,
    ApiKeyResponse,
    LoginRequest,
    TokenResponse,
    UserCreate,
    UserInfo,
    UserResponse,
)
from coinshop.services import auth as auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        client_id=user.client_id,
        is_active=user.is_active,
        created_at=user.created_at,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Open a buyer account.

    Staff and consignor accounts are created by an admin. A taken email
    answers 400 `email_taken`.
    """
    user = await auth_service.register_buyer(db, data.email, data.password, name=data.name)
    return _user_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange credentials for a bearer token (`Authorization: Bearer <token>`)."""
    user = await auth_service.authenticate_user(db, data.email, data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token, expires_in = auth_service.create_access_token(user.id, user.role)
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserInfo(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            client_id=user.client_id,
        ),
    )


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return _user_response(user)


@router.post("/api-keys", response_model=ApiKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_key(
    data: ApiKeyCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Issue an API key. The `key` is returned only here; send it as
    `X-API-Key` to bid from scripts.
    """
    api_key, plain_key = await auth_service.issue_api_key(db, user, data.name)
    return ApiKeyResponse(api_key=ApiKeyInfo.model_validate(api_key), key=plain_key)


@router.get("/api-keys", response_model=ApiKeyListResponse)
async def list_keys(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    keys = await auth_service.list_api_keys(db, user)
    return ApiKeyListResponse(
        api_keys=[ApiKeyListItem.model_validate(k) for k in keys],
        total=len(keys),
    )


@router.delete("/api-keys/{key_id}")
async def revoke_key(
    key_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a key. Unknown keys answer 404, revoked ones 400."""
    await auth_service.revoke_api_key(db, user, key_id)
    return {"message": "API key revoked"}
