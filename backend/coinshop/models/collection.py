"""
CoinShop - Collection Models

Buyer-curated collections of shop products and pieces bought elsewhere.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coinshop.core.clock import utcnow
from coinshop.core.database import Base

if TYPE_CHECKING:
    from coinshop.models.product import Product
    from coinshop.models.user import User


class Collection(Base):
    """A user's named collection. Private unless ``is_public``."""

    __tablename__ = "collections"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=True,
    )

    user: Mapped["User"] = relationship("User")
    items: Mapped[list["CollectionItem"]] = relationship(
        "CollectionItem",
        back_populates="collection",
        cascade="all, delete-orphan",
        order_by="CollectionItem.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Collection {self.name!r} user={self.user_id}>"


class CollectionItem(Base):
    """
    One entry in a collection.

    Either references a shop product or describes a custom piece through
    the ``custom_*`` fields. A product appears at most once per collection.
    """

    __tablename__ = "collection_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    collection_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    custom_title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    custom_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    custom_images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    current_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    attributes: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    collection: Mapped["Collection"] = relationship("Collection", back_populates="items")
    product: Mapped[Optional["Product"]] = relationship("Product")

    __table_args__ = (
        UniqueConstraint("collection_id", "product_id", name="uq_collection_item_product"),
    )

    @property
    def title(self) -> str:
        if self.product is not None:
            return self.product.title
        return self.custom_title or ""

    @property
    def value(self) -> Optional[Decimal]:
        """Owner's valuation, falling back to the shop price."""
        if self.current_value is not None:
            return self.current_value
        return self.product.price if self.product is not None else None

    def __repr__(self) -> str:
        return f"<CollectionItem {self.id} collection={self.collection_id}>"
