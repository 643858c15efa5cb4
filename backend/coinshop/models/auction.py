"""
CoinShop - Auction Models

Timed auctions over catalog products and the append-only bid log.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coinshop.core.clock import utcnow
from coinshop.core.database import Base

if TYPE_CHECKING:
    from coinshop.models.product import Product
    from coinshop.models.user import User


class AuctionStatus(str, enum.Enum):
    """
    Auction lifecycle.

    ACTIVE is the only open state; SOLD (closed with a winner), EXPIRED
    (closed without one) and CANCELLED are terminal.
    """

    ACTIVE = "active"
    SOLD = "sold"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Auction(Base):
    """
    Auction model.

    ``current_bid`` and ``high_bidder_id`` are a cached projection of the
    latest accepted bid. Every write to them goes through a conditional
    update on ``version`` so that concurrent bids serialize per auction.
    """

    __tablename__ = "auctions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    starting_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    current_bid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    bid_increment: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reserve_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    buy_now_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    status: Mapped[AuctionStatus] = mapped_column(
        Enum(AuctionStatus),
        default=AuctionStatus.ACTIVE,
        nullable=False,
    )
    high_bidder_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    bid_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    final_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        onupdate=utcnow,
        nullable=True,
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="auctions")
    high_bidder: Mapped[Optional["User"]] = relationship("User")
    bids: Mapped[list["AuctionBid"]] = relationship(
        "AuctionBid",
        back_populates="auction",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_auctions_status_end_time", "status", "end_time"),
    )

    @property
    def minimum_next_bid(self) -> Decimal:
        return self.current_bid + self.bid_increment

    @property
    def reserve_met(self) -> bool:
        return self.reserve_price is None or self.current_bid >= self.reserve_price

    def __repr__(self) -> str:
        return f"<Auction {self.id} ({self.status.value}) current={self.current_bid}>"


class AuctionBid(Base):
    """Append-only bid log entry."""

    __tablename__ = "auction_bids"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.id", ondelete="CASCADE"),
        nullable=False,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_buy_now: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    # Relationships
    auction: Mapped["Auction"] = relationship("Auction", back_populates="bids")
    bidder: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("ix_auction_bids_auction_created", "auction_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuctionBid {self.amount} on {self.auction_id}>"
