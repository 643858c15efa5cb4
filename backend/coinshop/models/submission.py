"""
CoinShop - Consignment Submission Models

Items a client submits for the shop to sell on their behalf.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coinshop.core.clock import utcnow
from coinshop.core.database import Base


class SubmissionStatus(str, enum.Enum):
    """Review workflow status."""

    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    LISTED = "listed"
    REJECTED = "rejected"


# Allowed status transitions; LISTED and REJECTED are terminal
SUBMISSION_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset({SubmissionStatus.REVIEWING, SubmissionStatus.REJECTED}),
    SubmissionStatus.REVIEWING: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}),
    SubmissionStatus.APPROVED: frozenset({SubmissionStatus.LISTED, SubmissionStatus.REJECTED}),
    SubmissionStatus.LISTED: frozenset(),
    SubmissionStatus.REJECTED: frozenset(),
}


class Submission(Base):
    """
    Consignment submission.

    ``ai_analysis`` holds the raw structured result of the AI analyzer and
    is only written after a successful analysis call.
    """

    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus),
        default=SubmissionStatus.PENDING,
        nullable=False,
        index=True,
    )
    ai_analysis: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    estimated_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    suggested_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
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

    images: Mapped[list["SubmissionImage"]] = relationship(
        "SubmissionImage",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionImage.sort_order",
    )

    def __repr__(self) -> str:
        return f"<Submission {self.title!r} ({self.status.value})>"


class SubmissionImage(Base):
    """Photo attached to a submission."""

    __tablename__ = "submission_images"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    submission: Mapped["Submission"] = relationship("Submission", back_populates="images")
