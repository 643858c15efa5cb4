"""
CoinShop API - Marketplace Integration Endpoints (staff)

OAuth connect flow and listing push/end against the configured marketplace.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_marketplace_client, require_staff
from coinshop.core.database import get_db
from coinshop.models.integration import ListingStatus, Platform
from coinshop.models.user import User
from coinshop.schemas.integration import (
    AuthorizationUrlResponse,
    ConnectionResponse,
    ListingCreate,
    ListingCreateResponse,
    ListingResponse,
    OAuthCallback,
)
from coinshop.services.marketplace import (
    MarketplaceClient,
    authorization_url,
    complete_authorization,
    create_listing,
    end_listing,
    list_listings,
    token_expired,
)

router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.get("/auth-url", response_model=AuthorizationUrlResponse)
async def get_authorization_url(
    user: User = Depends(require_staff),
    client: Optional[MarketplaceClient] = Depends(get_marketplace_client),
):
    """URL to send the admin to for granting marketplace access."""
    url = authorization_url(client, state=str(user.id))
    return AuthorizationUrlResponse(platform=client.platform, url=url)


@router.post("/callback", response_model=ConnectionResponse)
async def oauth_callback(
    data: OAuthCallback,
    user: User = Depends(require_staff),
    client: Optional[MarketplaceClient] = Depends(get_marketplace_client),
    db: AsyncSession = Depends(get_db),
):
    connection = await complete_authorization(db, client, user, data.code)
    return ConnectionResponse(
        platform=connection.platform,
        account_name=connection.account_name,
        expires_at=connection.expires_at,
        expired=token_expired(connection),
    )


@router.get("/listings", response_model=list[ListingResponse])
async def get_listings(
    platform: Optional[Platform] = Query(None),
    listing_status: Optional[ListingStatus] = Query(ListingStatus.ACTIVE, alias="status"),
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    listings = await list_listings(db, platform=platform, status=listing_status)
    return [ListingResponse.model_validate(item) for item in listings]


@router.post(
    "/listings",
    response_model=ListingCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def push_listing(
    data: ListingCreate,
    user: User = Depends(require_staff),
    client: Optional[MarketplaceClient] = Depends(get_marketplace_client),
    db: AsyncSession = Depends(get_db),
):
    """List a product on the marketplace. Remote failures answer 500."""
    listing, warnings = await create_listing(db, client, user, data.product_id, data.options)
    return ListingCreateResponse(
        listing=ListingResponse.model_validate(listing),
        warnings=warnings,
    )


@router.post("/listings/{listing_id}/end", response_model=ListingResponse)
async def finish_listing(
    listing_id: UUID,
    user: User = Depends(require_staff),
    client: Optional[MarketplaceClient] = Depends(get_marketplace_client),
    db: AsyncSession = Depends(get_db),
):
    listing = await end_listing(db, client, user, listing_id)
    return ListingResponse.model_validate(listing)
