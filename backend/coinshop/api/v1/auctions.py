"""
CoinShop API - Auction Endpoints

Auction discovery, bidding, bid history and staff close/cancel actions.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_current_user_or_api_key, get_optional_user, require_staff
from coinshop.core.clock import ensure_utc
from coinshop.core.database import get_db
from coinshop.models.auction import Auction, AuctionBid
from coinshop.models.product import Product
from coinshop.models.user import User
from coinshop.schemas.auction import (
    AuctionCreate,
    AuctionDetail,
    AuctionListResponse,
    AuctionProduct,
    AuctionSummary,
    BidCreate,
    BidHistoryResponse,
    BidPlacedResponse,
    BidResponse,
    CloseResultResponse,
    SweepResponse,
    UserBidItem,
)
from coinshop.schemas.common import PaginationMeta
from coinshop.services.auctions import (
    ACTIVE_AUCTION_SORTS,
    cancel_auction,
    close_expired_auctions,
    create_auction,
    get_auction,
    get_bid_history,
    get_user_bids,
    get_user_won_auctions,
    list_active_auctions,
    place_bid,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auctions", tags=["auctions"])

RECENT_BIDS_ON_DETAIL = 10


# =============================================================================
# Serialization helpers
# =============================================================================


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def product_summary(product: Product) -> AuctionProduct:
    return AuctionProduct(
        id=product.id,
        sku=product.sku,
        title=product.title,
        image_url=product.images[0].url if product.images else None,
        grade=product.grade,
        year=product.year,
        client_id=product.client_id,
    )


def bid_response(bid: AuctionBid, bidder_name: Optional[str] = None) -> BidResponse:
    return BidResponse(
        id=bid.id,
        auction_id=bid.auction_id,
        bidder_id=bid.bidder_id,
        bidder_name=bidder_name,
        amount=float(bid.amount),
        is_buy_now=bid.is_buy_now,
        created_at=ensure_utc(bid.created_at),
    )


def auction_summary(auction: Auction) -> AuctionSummary:
    return AuctionSummary(
        id=auction.id,
        product=product_summary(auction.product),
        status=auction.status.value,
        starting_price=float(auction.starting_price),
        current_bid=float(auction.current_bid),
        bid_increment=float(auction.bid_increment),
        minimum_next_bid=float(auction.minimum_next_bid),
        buy_now_price=_optional_float(auction.buy_now_price),
        bid_count=auction.bid_count,
        start_time=ensure_utc(auction.start_time),
        end_time=ensure_utc(auction.end_time),
    )


def auction_detail(
    auction: Auction,
    bids: list[AuctionBid],
    viewer: Optional[User],
) -> AuctionDetail:
    """Read model for one auction; the reserve amount itself is never exposed."""
    summary = auction_summary(auction)
    return AuctionDetail(
        **summary.model_dump(),
        reserve_met=auction.reserve_met,
        has_reserve=auction.reserve_price is not None,
        high_bidder_id=auction.high_bidder_id,
        high_bidder_name=auction.high_bidder.name if auction.high_bidder else None,
        is_high_bidder=viewer is not None and auction.high_bidder_id == viewer.id,
        final_price=_optional_float(auction.final_price),
        closed_at=ensure_utc(auction.closed_at),
        recent_bids=[bid_response(b, b.bidder.name if b.bidder else None) for b in bids],
    )


# =============================================================================
# Discovery
# =============================================================================


@router.get("", response_model=AuctionListResponse)
async def list_auctions(
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=100),
    sort: str = Query("ending-soon", description=f"One of {', '.join(ACTIVE_AUCTION_SORTS)}"),
    db: AsyncSession = Depends(get_db),
):
    """Open auctions, soonest ending first by default."""
    auctions, total = await list_active_auctions(db, page=page, per_page=per_page, sort=sort)
    return AuctionListResponse(
        data=[auction_summary(a) for a in auctions],
        meta=PaginationMeta.create(page=page, per_page=per_page, total=total),
    )


@router.get("/me/bids", response_model=list[UserBidItem])
async def my_bids(
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """The current user's bids on auctions that are still running."""
    bids = await get_user_bids(db, user)
    return [
        UserBidItem(
            bid=bid_response(bid, user.name),
            auction=auction_summary(bid.auction),
            is_winning=bid.auction.high_bidder_id == user.id,
        )
        for bid in bids
    ]


@router.get("/me/won", response_model=list[AuctionSummary])
async def my_won_auctions(
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    auctions = await get_user_won_auctions(db, user)
    return [auction_summary(a) for a in auctions]


@router.post("/close-expired", response_model=SweepResponse)
async def close_expired(
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """
    Close every auction whose end time has passed.

    The background scheduler does this periodically; this endpoint lets
    staff force a sweep.
    """
    sweep = await close_expired_auctions(db)
    logger.info(f"Manual auction sweep by {user.email}: {len(sweep.closed)} closed")
    return SweepResponse(
        closed=len(sweep.closed),
        sold=sweep.sold,
        expired=sweep.expired,
        results=[
            CloseResultResponse(
                auction_id=r.auction_id,
                product_id=r.product_id,
                status=r.status.value,
                has_winner=r.has_winner,
                final_bid=float(r.final_bid),
                order_id=r.order_id,
            )
            for r in sweep.closed
        ],
    )


@router.get("/{auction_id}", response_model=AuctionDetail)
async def get_auction_detail(
    auction_id: UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Auction with product, last 10 bids and viewer-specific flags."""
    auction = await get_auction(db, auction_id)
    bids = await get_bid_history(db, auction_id, limit=RECENT_BIDS_ON_DETAIL)
    return auction_detail(auction, bids, viewer)


# =============================================================================
# Create / bid
# =============================================================================


@router.post("", response_model=AuctionDetail, status_code=status.HTTP_201_CREATED)
async def open_auction(
    data: AuctionCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Open an auction on a product (staff, or the consignor who owns it)."""
    auction = await create_auction(
        db,
        user,
        product_id=data.product_id,
        starting_price=data.starting_price,
        end_time=data.end_time,
        reserve_price=data.reserve_price,
        buy_now_price=data.buy_now_price,
        bid_increment=data.bid_increment,
    )
    auction = await get_auction(db, auction.id)
    return auction_detail(auction, [], user)


@router.post(
    "/{auction_id}/bids",
    response_model=BidPlacedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bid(
    auction_id: UUID,
    data: BidCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """
    Place a bid.

    Rejections answer 400 with an error code the client can act on:
    `minimum_not_met` and `outbid` carry `details.minimum_bid` for a
    retry; `auction_closed` means the auction has ended. Bidding on your
    own consigned item answers 403 `self_bid`.
    """
    result = await place_bid(db, user, auction_id, data.amount)
    return BidPlacedResponse(
        bid=bid_response(result.bid, user.name),
        is_buy_now=result.is_buy_now,
        new_current_bid=float(result.new_current_bid),
        minimum_next_bid=float(result.minimum_next_bid),
        order_id=result.order.id if result.order else None,
    )


@router.get("/{auction_id}/bids", response_model=BidHistoryResponse)
async def list_bids(
    auction_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Bid history, newest first."""
    bids = await get_bid_history(db, auction_id, limit=limit)
    return BidHistoryResponse(
        auction_id=auction_id,
        bids=[bid_response(b, b.bidder.name if b.bidder else None) for b in bids],
    )


@router.post("/{auction_id}/cancel", response_model=AuctionDetail)
async def cancel(
    auction_id: UUID,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    await cancel_auction(db, auction_id)
    logger.info(f"Auction {auction_id} cancelled by {user.email}")
    auction = await get_auction(db, auction_id)
    bids = await get_bid_history(db, auction_id, limit=RECENT_BIDS_ON_DETAIL)
    return auction_detail(auction, bids, user)
