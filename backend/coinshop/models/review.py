"""
CoinShop - Seller Review Model
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coinshop.core.clock import utcnow
from coinshop.core.database import Base

if TYPE_CHECKING:
    from coinshop.models.user import User


class SellerReview(Base):
    """
    Buyer's rating of a seller (consignment client) for one delivered order.

    One review per order, enforced by the unique constraint on ``order_id``.
    """

    __tablename__ = "seller_reviews"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    overall_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    item_as_described: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_speed: Mapped[int] = mapped_column(Integer, nullable=False)
    communication: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    helpful_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    reviewer: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint("overall_rating BETWEEN 1 AND 5", name="ck_review_overall"),
        CheckConstraint("item_as_described BETWEEN 1 AND 5", name="ck_review_described"),
        CheckConstraint("shipping_speed BETWEEN 1 AND 5", name="ck_review_shipping"),
        CheckConstraint("communication BETWEEN 1 AND 5", name="ck_review_communication"),
    )

    def __repr__(self) -> str:
        return f"<SellerReview order={self.order_id} rating={self.overall_rating}>"
