"""
CoinShop - Auction Service

Bid placement, auction close and the auction read model.

Concurrency:
    An auction's ``current_bid`` / ``high_bidder_id`` pair is the only
    contended state in the shop. Every write to it is a single conditional
    UPDATE keyed on the auction's ``version``; the statement matches zero
    rows when another bid (or a close) got there first. The losing bid is
    re-checked against the fresh auction: it is retried while it still
    clears the new minimum, and rejected with ``OutbidError`` or
    ``AuctionClosedError`` otherwise. Nothing here reads-then-writes the
    cached fields without that guard.

State machine:
    active --(bid >= buy-now)--> sold
    active --(end time, winner, reserve met)--> sold
    active --(end time, no winner or reserve unmet)--> expired
    active --(staff)--> cancelled
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.clock import ensure_utc, utcnow
from coinshop.core.exceptions import (
    AuctionClosedError,
    BidTooLowError,
    ConflictError,
    NotFoundError,
    OutbidError,
    PermissionDeniedError,
    SelfBidError,
    ValidationError,
)
from coinshop.models.auction import Auction, AuctionBid, AuctionStatus
from coinshop.models.order import Order, OrderStatus
from coinshop.models.product import ListingType, Product, ProductStatus
from coinshop.models.user import User
from coinshop.services.orders import LineItem, create_order

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

ACTIVE_AUCTION_SORTS = ("ending-soon", "newest", "most-bids")

# Close attempts before giving up on an auction that keeps receiving bids
MAX_CLOSE_ATTEMPTS = 3

# Attempts for a bid that still clears the minimum after losing a race
MAX_BID_ATTEMPTS = 3


@dataclass
class BidResult:
    """Outcome of an accepted bid."""

    bid: AuctionBid
    is_buy_now: bool
    new_current_bid: Decimal
    minimum_next_bid: Decimal
    order: Optional[Order] = None


@dataclass
class CloseResult:
    """Outcome of closing one auction."""

    auction_id: UUID
    product_id: UUID
    status: AuctionStatus
    has_winner: bool
    final_bid: Decimal
    order_id: Optional[UUID] = None


@dataclass
class SweepResult:
    """Summary of a close-expired sweep."""

    closed: list[CloseResult] = field(default_factory=list)

    @property
    def sold(self) -> int:
        return sum(1 for r in self.closed if r.status == AuctionStatus.SOLD)

    @property
    def expired(self) -> int:
        return sum(1 for r in self.closed if r.status == AuctionStatus.EXPIRED)


# =============================================================================
# Helpers
# =============================================================================


def default_increment(price: Decimal) -> Decimal:
    """Bid increment table used when the seller does not set one."""
    if price < 25:
        return Decimal("1")
    if price < 100:
        return Decimal("5")
    if price < 500:
        return Decimal("10")
    if price < 1000:
        return Decimal("25")
    if price < 5000:
        return Decimal("50")
    return Decimal("100")


def to_money(value, field_name: str = "amount") -> Decimal:
    """
    Coerce a bid/price value to a positive Decimal with cent precision.

    Raises:
        ValidationError: non-numeric, non-positive or sub-cent values
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Valid {field_name} is required", code="validation_error")

    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Valid {field_name} is required", code="validation_error")
    if amount != amount.quantize(CENT):
        raise ValidationError(
            f"{field_name.capitalize()} must be in whole cents",
            code="validation_error",
        )
    return amount.quantize(CENT)


def is_open(auction: Auction, now: datetime) -> bool:
    return auction.status == AuctionStatus.ACTIVE and ensure_utc(auction.end_time) > now


async def _load_auction(db: AsyncSession, auction_id: UUID, fresh: bool = False) -> Auction:
    auction = await db.get(Auction, auction_id, populate_existing=fresh)
    if auction is None:
        raise NotFoundError("Auction not found")
    return auction


async def _latest_bid(db: AsyncSession, auction_id: UUID) -> Optional[AuctionBid]:
    result = await db.execute(
        select(AuctionBid)
        .where(AuctionBid.auction_id == auction_id)
        .order_by(AuctionBid.created_at.desc(), AuctionBid.amount.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def apply_bid(
    db: AsyncSession,
    auction: Auction,
    bidder_id: UUID,
    amount: Decimal,
    is_buy_now: bool,
    now: datetime,
) -> bool:
    """
    Compare-and-swap the auction's cached high bid.

    The UPDATE only matches while the auction is still active and still at
    the version the caller read; returns False when it matched nothing.
    """
    values = {
        "current_bid": amount,
        "high_bidder_id": bidder_id,
        "bid_count": Auction.bid_count + 1,
        "version": Auction.version + 1,
        "updated_at": now,
    }
    if is_buy_now:
        values.update(status=AuctionStatus.SOLD, final_price=amount, closed_at=now)

    result = await db.execute(
        update(Auction)
        .where(
            Auction.id == auction.id,
            Auction.version == auction.version,
            Auction.status == AuctionStatus.ACTIVE,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _create_winning_order(
    db: AsyncSession,
    auction: Auction,
    product: Product,
    winning_bid: AuctionBid,
) -> Order:
    return await create_order(
        db,
        user_id=winning_bid.bidder_id,
        items=[LineItem(product=product, price=winning_bid.amount)],
        status=OrderStatus.PENDING,
        auction_id=auction.id,
        winning_bid_id=winning_bid.id,
    )


# =============================================================================
# Create / read
# =============================================================================


async def create_auction(
    db: AsyncSession,
    user: User,
    product_id: UUID,
    starting_price,
    end_time: datetime,
    reserve_price=None,
    buy_now_price=None,
    bid_increment=None,
    now: Optional[datetime] = None,
) -> Auction:
    """
    Open an auction on a product.

    Consignors may auction their own products; staff may auction anything.
    Shop inventory (no owning client) is staff-only.

    Raises:
        NotFoundError: unknown product
        PermissionDeniedError: user may not auction this product
        ValidationError: bad prices or an end time not in the future
        ConflictError: the product already has an active auction
    """
    now = now or utcnow()

    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    if not user.is_staff and (product.client_id is None or user.client_id != product.client_id):
        raise PermissionDeniedError("You can only create auctions for your own products")

    starting = to_money(starting_price, "starting price")
    reserve = to_money(reserve_price, "reserve price") if reserve_price is not None else None
    buy_now = to_money(buy_now_price, "buy now price") if buy_now_price is not None else None
    increment = (
        to_money(bid_increment, "bid increment")
        if bid_increment is not None
        else default_increment(starting)
    )

    if buy_now is not None and buy_now <= starting:
        raise ValidationError("Buy now price must be above the starting price")

    end_time = ensure_utc(end_time)
    if end_time <= now:
        raise ValidationError("End time must be in the future")

    existing = await db.execute(
        select(Auction.id).where(
            Auction.product_id == product_id,
            Auction.status == AuctionStatus.ACTIVE,
        )
    )
    if existing.first() is not None:
        raise ConflictError("Active auction already exists for this product")

    auction = Auction(
        product_id=product_id,
        starting_price=starting,
        current_bid=starting,
        bid_increment=increment,
        reserve_price=reserve,
        buy_now_price=buy_now,
        start_time=now,
        end_time=end_time,
        status=AuctionStatus.ACTIVE,
        bid_count=0,
        version=0,
    )
    db.add(auction)
    product.listing_type = ListingType.AUCTION
    await db.flush()

    logger.info(
        f"Auction {auction.id} opened on product {product.sku} "
        f"(start={starting}, increment={increment}, ends={end_time.isoformat()})"
    )
    return auction


async def get_auction(db: AsyncSession, auction_id: UUID) -> Auction:
    """Get an auction with its product, product images and high bidder."""
    result = await db.execute(
        select(Auction)
        .where(Auction.id == auction_id)
        .options(
            selectinload(Auction.product).selectinload(Product.images),
            selectinload(Auction.product).selectinload(Product.client),
            selectinload(Auction.high_bidder),
        )
        .execution_options(populate_existing=True)
    )
    auction = result.scalar_one_or_none()
    if auction is None:
        raise NotFoundError("Auction not found")
    return auction


async def get_bid_history(
    db: AsyncSession,
    auction_id: UUID,
    limit: int = 20,
) -> list[AuctionBid]:
    """Most recent bids for an auction, newest first, with bidder loaded."""
    await _load_auction(db, auction_id)

    result = await db.execute(
        select(AuctionBid)
        .where(AuctionBid.auction_id == auction_id)
        .options(selectinload(AuctionBid.bidder))
        .order_by(AuctionBid.created_at.desc(), AuctionBid.amount.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_active_auctions(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 12,
    sort: str = "ending-soon",
    now: Optional[datetime] = None,
) -> tuple[list[Auction], int]:
    """
    Open auctions for discovery.

    Args:
        sort: ``ending-soon`` (default), ``newest`` or ``most-bids``

    Returns:
        Tuple of (auctions, total)
    """
    now = now or utcnow()
    conditions = (
        Auction.status == AuctionStatus.ACTIVE,
        Auction.end_time > now,
    )

    order_by = {
        "ending-soon": (Auction.end_time.asc(),),
        "newest": (Auction.created_at.desc(),),
        "most-bids": (Auction.bid_count.desc(), Auction.end_time.asc()),
    }.get(sort, (Auction.end_time.asc(),))

    total = (
        await db.execute(select(func.count()).select_from(Auction).where(*conditions))
    ).scalar() or 0

    result = await db.execute(
        select(Auction)
        .where(*conditions)
        .options(
            selectinload(Auction.product).selectinload(Product.images),
            selectinload(Auction.product).selectinload(Product.client),
        )
        .order_by(*order_by)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_user_bids(db: AsyncSession, user: User) -> list[AuctionBid]:
    """The user's bids on auctions that are still active, newest first."""
    result = await db.execute(
        select(AuctionBid)
        .join(Auction, Auction.id == AuctionBid.auction_id)
        .where(
            AuctionBid.bidder_id == user.id,
            Auction.status == AuctionStatus.ACTIVE,
        )
        .options(
            selectinload(AuctionBid.auction)
            .selectinload(Auction.product)
            .selectinload(Product.images)
        )
        .order_by(AuctionBid.created_at.desc())
    )
    return list(result.scalars().all())


async def get_user_won_auctions(db: AsyncSession, user: User) -> list[Auction]:
    """Auctions the user won, most recently ended first."""
    result = await db.execute(
        select(Auction)
        .where(
            Auction.high_bidder_id == user.id,
            Auction.status == AuctionStatus.SOLD,
        )
        .options(selectinload(Auction.product).selectinload(Product.images))
        .order_by(Auction.end_time.desc())
    )
    return list(result.scalars().all())


# =============================================================================
# Bidding
# =============================================================================


async def place_bid(
    db: AsyncSession,
    bidder: User,
    auction_id: UUID,
    amount,
    now: Optional[datetime] = None,
) -> BidResult:
    """
    Verify and apply a bid.

    A bid is accepted when it is at least ``current_bid + bid_increment``,
    or when a buy-now price is set and the bid meets it. A buy-now bid
    closes the auction as sold, marks the product sold and creates the
    order in the same transaction.

    Raises:
        ValidationError: malformed amount
        NotFoundError: unknown auction
        AuctionClosedError: auction not active or past its end time
        SelfBidError: bidder consigned the item
        BidTooLowError: amount below the minimum next bid
        OutbidError: another bid was accepted first
    """
    now = now or utcnow()
    amount = to_money(amount, "bid amount")

    auction = await _load_auction(db, auction_id, fresh=True)
    if not is_open(auction, now):
        raise AuctionClosedError("Auction is not accepting bids")

    product = await db.get(Product, auction.product_id)
    if product is not None and product.client_id is not None and bidder.client_id == product.client_id:
        raise SelfBidError("You cannot bid on your own auction")

    minimum = auction.minimum_next_bid
    is_buy_now = bool(auction.buy_now_price) and amount >= auction.buy_now_price
    if amount < minimum and not is_buy_now:
        raise BidTooLowError(minimum)

    for _ in range(MAX_BID_ATTEMPTS):
        if await apply_bid(db, auction, bidder.id, amount, is_buy_now, now):
            break

        auction = await _load_auction(db, auction_id, fresh=True)
        if not is_open(auction, now):
            raise AuctionClosedError("Auction is not accepting bids")
        is_buy_now = bool(auction.buy_now_price) and amount >= auction.buy_now_price
        if amount < auction.minimum_next_bid and not is_buy_now:
            logger.info(f"Bid {amount} on auction {auction_id} lost a race (now {auction.current_bid})")
            raise OutbidError(minimum_bid=auction.minimum_next_bid)
        logger.debug(f"Retrying bid {amount} on auction {auction_id} at version {auction.version}")
    else:
        logger.warning(f"Bid {amount} on auction {auction_id} lost {MAX_BID_ATTEMPTS} races")
        raise OutbidError(minimum_bid=auction.minimum_next_bid)

    bid = AuctionBid(
        auction_id=auction_id,
        bidder_id=bidder.id,
        amount=amount,
        is_buy_now=is_buy_now,
    )
    db.add(bid)
    await db.flush()
    await db.refresh(auction)

    order = None
    if is_buy_now:
        product.status = ProductStatus.SOLD
        order = await _create_winning_order(db, auction, product, bid)
        logger.info(f"Auction {auction_id} sold via buy now to {bidder.id} at {amount}")
    else:
        logger.info(f"Bid accepted on auction {auction_id}: {amount} by {bidder.id}")

    return BidResult(
        bid=bid,
        is_buy_now=is_buy_now,
        new_current_bid=amount,
        minimum_next_bid=amount + auction.bid_increment,
        order=order,
    )


# =============================================================================
# Close
# =============================================================================


async def close_auction(
    db: AsyncSession,
    auction_id: UUID,
    now: Optional[datetime] = None,
) -> Optional[CloseResult]:
    """
    Transition an ended auction out of ``active`` exactly once.

    The winner is the latest accepted bid when the reserve is met (or there
    is none). Sold auctions get one order referencing the winning bid and
    the product is marked sold; otherwise the auction expires and the
    product goes back to fixed-price sale.

    Returns:
        CloseResult, or None if the auction has not ended yet or is no
        longer active (already sold, swept or cancelled).
    """
    now = now or utcnow()

    for _ in range(MAX_CLOSE_ATTEMPTS):
        auction = await _load_auction(db, auction_id, fresh=True)
        if auction.status != AuctionStatus.ACTIVE:
            return None
        if ensure_utc(auction.end_time) > now:
            return None

        has_winner = auction.high_bidder_id is not None and auction.reserve_met
        new_status = AuctionStatus.SOLD if has_winner else AuctionStatus.EXPIRED

        result = await db.execute(
            update(Auction)
            .where(
                Auction.id == auction.id,
                Auction.version == auction.version,
                Auction.status == AuctionStatus.ACTIVE,
            )
            .values(
                status=new_status,
                final_price=auction.current_bid if has_winner else None,
                closed_at=now,
                version=Auction.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            break
    else:
        logger.warning(f"Auction {auction_id} changed under {MAX_CLOSE_ATTEMPTS} close attempts")
        return None

    await db.refresh(auction)
    product = await db.get(Product, auction.product_id)

    order_id = None
    if has_winner:
        winning_bid = await _latest_bid(db, auction.id)
        product.status = ProductStatus.SOLD
        order = await _create_winning_order(db, auction, product, winning_bid)
        order_id = order.id
    else:
        product.status = ProductStatus.ACTIVE
        product.listing_type = ListingType.BUY_NOW
    await db.flush()

    logger.info(
        f"Auction {auction.id} closed as {new_status.value} "
        f"(final bid {auction.current_bid}, reserve {'met' if auction.reserve_met else 'unmet'})"
    )
    return CloseResult(
        auction_id=auction.id,
        product_id=auction.product_id,
        status=new_status,
        has_winner=has_winner,
        final_bid=auction.current_bid,
        order_id=order_id,
    )


async def close_expired_auctions(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> SweepResult:
    """Close every active auction whose end time has passed."""
    now = now or utcnow()

    result = await db.execute(
        select(Auction.id)
        .where(
            Auction.status == AuctionStatus.ACTIVE,
            Auction.end_time <= now,
        )
        .order_by(Auction.end_time.asc())
    )
    sweep = SweepResult()
    for auction_id in result.scalars().all():
        closed = await close_auction(db, auction_id, now=now)
        if closed is not None:
            sweep.closed.append(closed)

    if sweep.closed:
        logger.info(f"Closed {len(sweep.closed)} auctions ({sweep.sold} sold, {sweep.expired} expired)")
    return sweep


async def cancel_auction(
    db: AsyncSession,
    auction_id: UUID,
    now: Optional[datetime] = None,
) -> Auction:
    """
    Cancel an active auction (staff action). No order is created.

    Raises:
        NotFoundError: unknown auction
        ConflictError: auction already closed
    """
    now = now or utcnow()
    auction = await _load_auction(db, auction_id, fresh=True)

    result = await db.execute(
        update(Auction)
        .where(Auction.id == auction_id, Auction.status == AuctionStatus.ACTIVE)
        .values(
            status=AuctionStatus.CANCELLED,
            closed_at=now,
            version=Auction.version + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Auction is not active")

    product = await db.get(Product, auction.product_id)
    product.status = ProductStatus.ACTIVE
    product.listing_type = ListingType.BUY_NOW
    await db.flush()
    await db.refresh(auction)

    logger.info(f"Auction {auction_id} cancelled")
    return auction
