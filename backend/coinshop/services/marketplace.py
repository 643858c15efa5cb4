"""
CoinShop - Marketplace Integration Service

OAuth token relay and listing bookkeeping for external marketplaces. The
remote API itself sits behind ``MarketplaceClient``; only the records the
shop keeps about connections and listings live here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.clock import ensure_utc, utcnow
from coinshop.core.exceptions import (
    ConflictError,
    MarketplaceNotConfiguredError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from coinshop.models.integration import (
    ListingStatus,
    Platform,
    PlatformConnection,
    PlatformListing,
)
from coinshop.models.product import Product
from coinshop.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds
    account_name: Optional[str] = None


@dataclass
class RemoteListing:
    external_id: str
    url: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


class MarketplaceClient(Protocol):
    """Remote marketplace API."""

    platform: Platform

    def authorization_url(self, state: str) -> str:
        ...

    async def exchange_code(self, code: str) -> OAuthTokens:
        ...

    async def create_listing(
        self, access_token: str, product: Product, options: dict[str, Any]
    ) -> RemoteListing:
        ...

    async def end_listing(self, access_token: str, external_id: str) -> None:
        ...


def _require(client: Optional[MarketplaceClient]) -> MarketplaceClient:
    if client is None:
        raise MarketplaceNotConfiguredError("Marketplace integration is not configured")
    return client


def authorization_url(client: Optional[MarketplaceClient], state: str = "platform") -> str:
    """URL the admin is redirected to for granting access."""
    return _require(client).authorization_url(state)


async def complete_authorization(
    db: AsyncSession,
    client: Optional[MarketplaceClient],
    user: User,
    code: str,
) -> PlatformConnection:
    """
    Exchange an OAuth code and store (or replace) the user's tokens.

    Raises:
        ValidationError: missing code
        UpstreamError: token exchange failed
    """
    client = _require(client)
    if not code:
        raise ValidationError("No authorization code received")

    try:
        tokens = await client.exchange_code(code)
    except Exception as e:
        logger.error(f"{client.platform.value} token exchange failed: {e}")
        raise UpstreamError("Failed to connect marketplace account", cause=e)

    expires_at = (
        utcnow() + timedelta(seconds=tokens.expires_in) if tokens.expires_in else None
    )

    result = await db.execute(
        select(PlatformConnection).where(
            PlatformConnection.user_id == user.id,
            PlatformConnection.platform == client.platform,
        )
    )
    connection = result.scalar_one_or_none()
    if connection is None:
        connection = PlatformConnection(user_id=user.id, platform=client.platform)
        db.add(connection)

    connection.access_token = tokens.access_token
    connection.refresh_token = tokens.refresh_token
    connection.expires_at = expires_at
    connection.account_name = tokens.account_name
    await db.flush()

    logger.info(f"Stored {client.platform.value} tokens for user {user.id}")
    return connection


async def _connection_for(
    db: AsyncSession, user: User, platform: Platform
) -> PlatformConnection:
    result = await db.execute(
        select(PlatformConnection).where(
            PlatformConnection.user_id == user.id,
            PlatformConnection.platform == platform,
        )
    )
    connection = result.scalar_one_or_none()
    if connection is None:
        raise ValidationError(f"No {platform.value} account connected")
    return connection


async def create_listing(
    db: AsyncSession,
    client: Optional[MarketplaceClient],
    user: User,
    product_id: UUID,
    options: Optional[dict[str, Any]] = None,
) -> tuple[PlatformListing, list[str]]:
    """
    Push a product to the marketplace and record the listing.

    Raises:
        NotFoundError: unknown product
        ConflictError: product already actively listed on the platform
        UpstreamError: remote call failed
    """
    client = _require(client)
    result = await db.execute(
        select(Product).where(Product.id == product_id).options(selectinload(Product.images))
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")

    existing = await db.execute(
        select(PlatformListing.id).where(
            PlatformListing.product_id == product_id,
            PlatformListing.platform == client.platform,
            PlatformListing.status == ListingStatus.ACTIVE,
        )
    )
    if existing.first() is not None:
        raise ConflictError(f"Product already listed on {client.platform.value}")

    connection = await _connection_for(db, user, client.platform)

    try:
        remote = await client.create_listing(connection.access_token, product, options or {})
    except Exception as e:
        logger.error(f"{client.platform.value} listing failed for {product.sku}: {e}")
        raise UpstreamError(f"Failed to create {client.platform.value} listing", cause=e)

    listing = PlatformListing(
        product_id=product.id,
        platform=client.platform,
        external_id=remote.external_id,
        url=remote.url,
        status=ListingStatus.ACTIVE,
        payload=options or None,
    )
    db.add(listing)
    await db.flush()

    logger.info(f"Listed {product.sku} on {client.platform.value} as {remote.external_id}")
    return listing, remote.warnings


async def end_listing(
    db: AsyncSession,
    client: Optional[MarketplaceClient],
    user: User,
    listing_id: UUID,
) -> PlatformListing:
    """End a listing remotely and mark it ended."""
    client = _require(client)
    listing = await db.get(PlatformListing, listing_id)
    if listing is None:
        raise NotFoundError("Listing not found")
    if listing.status != ListingStatus.ACTIVE:
        raise ConflictError("Listing is not active")

    connection = await _connection_for(db, user, listing.platform)
    try:
        await client.end_listing(connection.access_token, listing.external_id)
    except Exception as e:
        logger.error(f"Ending listing {listing.external_id} failed: {e}")
        raise UpstreamError("Failed to end listing", cause=e)

    listing.status = ListingStatus.ENDED
    listing.ended_at = utcnow()
    await db.flush()
    return listing


async def list_listings(
    db: AsyncSession,
    platform: Optional[Platform] = None,
    status: Optional[ListingStatus] = ListingStatus.ACTIVE,
) -> list[PlatformListing]:
    query = select(PlatformListing)
    if platform is not None:
        query = query.where(PlatformListing.platform == platform)
    if status is not None:
        query = query.where(PlatformListing.status == status)
    result = await db.execute(query.order_by(PlatformListing.created_at.desc()))
    return list(result.scalars().all())


def token_expired(connection: PlatformConnection, now: Optional[datetime] = None) -> bool:
    if connection.expires_at is None:
        return False
    return ensure_utc(connection.expires_at) <= (now or utcnow())
