"""
CoinShop - Offer Service

Buyers propose a price on a fixed-price product; the seller accepts,
declines or counters, and the buyer may accept a counter or withdraw.

Offers on a consigned product are answered by its client's consignor
account. Staff may answer any offer, shop inventory included.

Accepting sells the product: the product flips from ``active`` to ``sold``
with a conditional update, a pending order is opened at the agreed price
and every other open offer on the product is declined. A product that was
sold first (checkout, buy-now, another offer) makes the accept a conflict.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.clock import ensure_utc, utcnow
from coinshop.core.config import settings
from coinshop.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from coinshop.models.auction import Auction, AuctionStatus
from coinshop.models.offer import OPEN_OFFER_STATUSES, Offer, OfferStatus
from coinshop.models.order import Order
from coinshop.models.product import ListingType, Product, ProductStatus
from coinshop.models.user import User
from coinshop.services.auctions import to_money
from coinshop.services.orders import LineItem, create_order

logger = logging.getLogger(__name__)


def _expiry(hours: Optional[int], now: datetime) -> datetime:
    hours = settings.offer_expiry_hours if hours is None else hours
    if not 1 <= hours <= settings.offer_max_expiry_hours:
        raise ValidationError(
            f"Offers can stay open between 1 and {settings.offer_max_expiry_hours} hours",
            details={"expires_in_hours": hours},
        )
    return now + timedelta(hours=hours)


def can_answer(user: User, offer: Offer) -> bool:
    """Staff, or the consignor whose product the offer is on."""
    if user.is_staff:
        return True
    return user.client_id is not None and user.client_id == offer.seller_client_id


async def _load_offer(db: AsyncSession, offer_id: UUID) -> Offer:
    result = await db.execute(
        select(Offer)
        .where(Offer.id == offer_id)
        .options(selectinload(Offer.product).selectinload(Product.images))
        .execution_options(populate_existing=True)
    )
    offer = result.scalar_one_or_none()
    if offer is None:
        raise NotFoundError("Offer not found")
    return offer


async def _transition(
    db: AsyncSession,
    offer: Offer,
    from_statuses: tuple[OfferStatus, ...],
    to_status: OfferStatus,
    now: datetime,
    **values,
) -> Offer:
    """Move an offer between statuses, once."""
    result = await db.execute(
        update(Offer)
        .where(Offer.id == offer.id, Offer.status.in_(from_statuses))
        .values(status=to_status, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Offer is no longer open", code="offer_closed")
    return await _load_offer(db, offer.id)


# =============================================================================
# Create / read
# =============================================================================


async def create_offer(
    db: AsyncSession,
    buyer: User,
    product_id: UUID,
    amount,
    message: Optional[str] = None,
    expires_in_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Offer:
    """
    Make an offer on an active fixed-price product.

    Raises:
        NotFoundError: unknown product
        ValidationError: product not open to offers, bad amount or expiry
        PermissionDeniedError: buyer consigned the product
        ConflictError: buyer already has an open offer on it
    """
    now = now or utcnow()
    amount = to_money(amount, "offer amount")
    expires_at = _expiry(expires_in_hours, now)

    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if product.status != ProductStatus.ACTIVE or product.listing_type == ListingType.AUCTION:
        raise ValidationError("Product is not available for offers", code="not_offerable")

    running = await db.execute(
        select(Auction.id).where(Auction.product_id == product_id, Auction.status == AuctionStatus.ACTIVE)
    )
    if running.first() is not None:
        raise ValidationError("Product is currently at auction", code="not_offerable")

    if product.client_id is not None and buyer.client_id == product.client_id:
        raise PermissionDeniedError("You cannot make an offer on your own product", code="self_offer")

    existing = await db.execute(
        select(Offer.id).where(
            Offer.product_id == product_id,
            Offer.buyer_id == buyer.id,
            Offer.status.in_(OPEN_OFFER_STATUSES),
        )
    )
    if existing.first() is not None:
        raise ConflictError("You already have an open offer on this product", code="duplicate_offer")

    offer = Offer(
        product_id=product_id,
        buyer_id=buyer.id,
        seller_client_id=product.client_id,
        amount=amount,
        message=message,
        expires_at=expires_at,
        status=OfferStatus.PENDING,
    )
    db.add(offer)
    await db.flush()

    logger.info(f"Offer {offer.id} of {amount} on product {product_id} by {buyer.id}")
    return await _load_offer(db, offer.id)


async def get_offer(db: AsyncSession, user: User, offer_id: UUID) -> Offer:
    """An offer visible to its buyer or its seller."""
    offer = await _load_offer(db, offer_id)
    if offer.buyer_id != user.id and not can_answer(user, offer):
        raise PermissionDeniedError("Access denied")
    return offer


async def list_buyer_offers(
    db: AsyncSession,
    buyer: User,
    status: Optional[OfferStatus] = None,
) -> list[Offer]:
    query = select(Offer).where(Offer.buyer_id == buyer.id)
    if status is not None:
        query = query.where(Offer.status == status)
    result = await db.execute(
        query.options(selectinload(Offer.product).selectinload(Product.images)).order_by(
            Offer.created_at.desc()
        )
    )
    return list(result.scalars().all())


async def list_seller_offers(
    db: AsyncSession,
    seller: User,
    status: Optional[OfferStatus] = None,
    product_id: Optional[UUID] = None,
) -> list[Offer]:
    """
    Offers the user may answer, newest first.

    Staff see every offer; consignors see offers on their client's products.
    """
    query = select(Offer)
    if not seller.is_staff:
        if seller.client_id is None:
            return []
        query = query.where(Offer.seller_client_id == seller.client_id)
    if status is not None:
        query = query.where(Offer.status == status)
    if product_id is not None:
        query = query.where(Offer.product_id == product_id)

    result = await db.execute(
        query.options(
            selectinload(Offer.product).selectinload(Product.images),
            selectinload(Offer.buyer),
        ).order_by(Offer.created_at.desc())
    )
    return list(result.scalars().all())


async def get_product_offers(db: AsyncSession, seller: User, product_id: UUID) -> list[Offer]:
    """All offers on one product, for its seller."""
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if not seller.is_staff and (seller.client_id is None or seller.client_id != product.client_id):
        raise PermissionDeniedError("Access denied")
    return await list_seller_offers(db, seller, product_id=product_id)


# =============================================================================
# Seller actions
# =============================================================================


async def _answerable(db: AsyncSession, seller: User, offer_id: UUID, now: datetime) -> Offer:
    offer = await _load_offer(db, offer_id)
    if not can_answer(seller, offer):
        raise PermissionDeniedError("Access denied")
    if offer.status != OfferStatus.PENDING:
        raise ConflictError("Offer is no longer pending", code="offer_closed")
    if ensure_utc(offer.expires_at) <= now:
        raise ValidationError("Offer has expired", code="offer_expired")
    return offer


async def _sell(db: AsyncSession, offer: Offer, price: Decimal, from_status: OfferStatus, now: datetime) -> Offer:
    """Sell the product to the offer's buyer at ``price``."""
    sold = await db.execute(
        update(Product)
        .where(Product.id == offer.product_id, Product.status == ProductStatus.ACTIVE)
        .values(status=ProductStatus.SOLD)
        .execution_options(synchronize_session=False)
    )
    if sold.rowcount != 1:
        raise ConflictError("Product is no longer available", code="product_unavailable")

    offer = await _transition(db, offer, (from_status,), OfferStatus.ACCEPTED, now)

    product = await db.get(Product, offer.product_id, populate_existing=True)
    order: Order = await create_order(
        db,
        user_id=offer.buyer_id,
        items=[LineItem(product=product, price=price)],
    )
    offer.order_id = order.id

    declined = await db.execute(
        update(Offer)
        .where(
            Offer.product_id == offer.product_id,
            Offer.id != offer.id,
            Offer.status.in_(OPEN_OFFER_STATUSES),
        )
        .values(status=OfferStatus.DECLINED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    logger.info(
        f"Offer {offer.id} accepted at {price}: order {order.order_number}, "
        f"{declined.rowcount} other offers declined"
    )
    return await _load_offer(db, offer.id)


async def accept_offer(
    db: AsyncSession,
    seller: User,
    offer_id: UUID,
    now: Optional[datetime] = None,
) -> Offer:
    """
    Accept a pending offer at the buyer's amount.

    Raises:
        NotFoundError: unknown offer
        PermissionDeniedError: user may not answer this offer
        ConflictError: offer no longer pending, or product already sold
        ValidationError: offer has expired
    """
    now = now or utcnow()
    offer = await _answerable(db, seller, offer_id, now)
    return await _sell(db, offer, offer.amount, OfferStatus.PENDING, now)


async def decline_offer(
    db: AsyncSession,
    seller: User,
    offer_id: UUID,
    now: Optional[datetime] = None,
) -> Offer:
    now = now or utcnow()
    offer = await _load_offer(db, offer_id)
    if not can_answer(seller, offer):
        raise PermissionDeniedError("Access denied")
    offer = await _transition(db, offer, (OfferStatus.PENDING,), OfferStatus.DECLINED, now)
    logger.info(f"Offer {offer.id} declined by {seller.id}")
    return offer


async def counter_offer(
    db: AsyncSession,
    seller: User,
    offer_id: UUID,
    amount,
    message: Optional[str] = None,
    expires_in_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Offer:
    """Answer a pending offer with the seller's price; the buyer decides next."""
    now = now or utcnow()
    amount = to_money(amount, "counter amount")
    counter_expires_at = _expiry(expires_in_hours, now)

    offer = await _answerable(db, seller, offer_id, now)
    offer = await _transition(
        db,
        offer,
        (OfferStatus.PENDING,),
        OfferStatus.COUNTERED,
        now,
        counter_amount=amount,
        counter_message=message,
        counter_expires_at=counter_expires_at,
    )
    logger.info(f"Offer {offer.id} countered at {amount}")
    return offer


# =============================================================================
# Buyer actions
# =============================================================================


async def accept_counter_offer(
    db: AsyncSession,
    buyer: User,
    offer_id: UUID,
    now: Optional[datetime] = None,
) -> Offer:
    """
    Accept the seller's counter at the counter amount.

    Raises:
        NotFoundError: unknown offer
        PermissionDeniedError: not the buyer's offer
        ConflictError: no counter to accept, or product already sold
        ValidationError: the counter has expired
    """
    now = now or utcnow()
    offer = await _load_offer(db, offer_id)
    if offer.buyer_id != buyer.id:
        raise PermissionDeniedError("Access denied")
    if offer.status != OfferStatus.COUNTERED:
        raise ConflictError("No counter offer to accept", code="offer_closed")
    if offer.counter_expires_at is not None and ensure_utc(offer.counter_expires_at) <= now:
        raise ValidationError("Counter offer has expired", code="offer_expired")
    return await _sell(db, offer, offer.counter_amount, OfferStatus.COUNTERED, now)


async def withdraw_offer(
    db: AsyncSession,
    buyer: User,
    offer_id: UUID,
    now: Optional[datetime] = None,
) -> Offer:
    now = now or utcnow()
    offer = await _load_offer(db, offer_id)
    if offer.buyer_id != buyer.id:
        raise PermissionDeniedError("Access denied")
    offer = await _transition(db, offer, OPEN_OFFER_STATUSES, OfferStatus.WITHDRAWN, now)
    logger.info(f"Offer {offer.id} withdrawn")
    return offer


# =============================================================================
# Expiry
# =============================================================================


async def expire_stale_offers(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Expire pending offers and counters past their deadline; returns how many."""
    now = now or utcnow()
    result = await db.execute(
        update(Offer)
        .where(
            or_(
                and_(Offer.status == OfferStatus.PENDING, Offer.expires_at < now),
                and_(Offer.status == OfferStatus.COUNTERED, Offer.counter_expires_at < now),
            )
        )
        .values(status=OfferStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info(f"Expired {result.rowcount} offers")
    return result.rowcount
