"""
CoinShop - Auction Schemas

Pydantic schemas for auction and bid API request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.schemas.common import PaginationMeta


# =============================================================================
# Request Schemas
# =============================================================================


class AuctionCreate(BaseModel):
    """Open an auction on a product."""

    product_id: UUID
    starting_price: Decimal = Field(..., gt=0)
    end_time: datetime
    reserve_price: Optional[Decimal] = Field(None, gt=0)
    buy_now_price: Optional[Decimal] = Field(None, gt=0)
    bid_increment: Optional[Decimal] = Field(
        None, gt=0, description="Defaults to the price-tier increment table"
    )


class BidCreate(BaseModel):
    amount: Decimal = Field(..., description="Bid amount in dollars")


# =============================================================================
# Response Schemas
# =============================================================================


class AuctionProduct(BaseModel):
    """Product summary shown on auction cards."""

    id: UUID
    sku: str
    title: str
    image_url: Optional[str] = None
    grade: Optional[str] = None
    year: Optional[int] = None
    client_id: Optional[UUID] = None


class BidResponse(BaseModel):
    """A single bid record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    auction_id: UUID
    bidder_id: UUID
    bidder_name: Optional[str] = None
    amount: float
    is_buy_now: bool
    created_at: datetime


class BidPlacedResponse(BaseModel):
    """Outcome of an accepted bid."""

    bid: BidResponse
    is_buy_now: bool
    new_current_bid: float
    minimum_next_bid: float
    order_id: Optional[UUID] = None


class BidHistoryResponse(BaseModel):
    auction_id: UUID
    bids: list[BidResponse]


class AuctionSummary(BaseModel):
    id: UUID
    product: AuctionProduct
    status: str
    starting_price: float
    current_bid: float
    bid_increment: float
    minimum_next_bid: float
    buy_now_price: Optional[float] = None
    bid_count: int
    start_time: datetime
    end_time: datetime


class AuctionDetail(AuctionSummary):
    """Auction read model with derived fields for the viewing user."""

    reserve_met: bool
    has_reserve: bool
    high_bidder_id: Optional[UUID] = None
    high_bidder_name: Optional[str] = None
    is_high_bidder: bool = False
    final_price: Optional[float] = None
    closed_at: Optional[datetime] = None
    recent_bids: list[BidResponse] = Field(default_factory=list)


class AuctionListResponse(BaseModel):
    data: list[AuctionSummary]
    meta: PaginationMeta


class UserBidItem(BaseModel):
    """One of the user's bids with the auction it was placed on."""

    bid: BidResponse
    auction: AuctionSummary
    is_winning: bool


class CloseResultResponse(BaseModel):
    auction_id: UUID
    product_id: UUID
    status: str
    has_winner: bool
    final_bid: float
    order_id: Optional[UUID] = None


class SweepResponse(BaseModel):
    closed: int
    sold: int
    expired: int
    results: list[CloseResultResponse]
