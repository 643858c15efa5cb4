"""
CoinShop - Offer Model

Buyer offers on fixed-price products, and the seller's counter.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coinshop.core.clock import utcnow
from coinshop.core.database import Base

if TYPE_CHECKING:
    from coinshop.models.product import Product
    from coinshop.models.user import User


class OfferStatus(str, enum.Enum):
    """
    Offer lifecycle.

    PENDING waits on the seller, COUNTERED waits on the buyer. ACCEPTED,
    DECLINED, EXPIRED and WITHDRAWN are terminal.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTERED = "countered"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


# Statuses an offer can still move out of
OPEN_OFFER_STATUSES = (OfferStatus.PENDING, OfferStatus.COUNTERED)


class Offer(Base):
    """
    A buyer's price proposal for one product.

    ``seller_client_id`` is the consignor who owns the product when the
    offer is made; None means shop inventory, answered by staff. Status
    changes go through conditional updates on ``status`` so an offer is
    answered once.
    """

    __tablename__ = "offers"

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
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seller_client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[OfferStatus] = mapped_column(
        Enum(OfferStatus),
        default=OfferStatus.PENDING,
        nullable=False,
    )
    counter_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    counter_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    counter_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
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

    product: Mapped["Product"] = relationship("Product")
    buyer: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("ix_offers_status_expires_at", "status", "expires_at"),
    )

    @property
    def agreed_amount(self) -> Decimal:
        """Sale price if accepted now: the counter when there is one."""
        if self.status == OfferStatus.COUNTERED and self.counter_amount is not None:
            return self.counter_amount
        return self.amount

    def __repr__(self) -> str:
        return f"<Offer {self.id} ({self.status.value}) amount={self.amount}>"
