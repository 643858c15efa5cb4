"""
CoinShop - Client (Consignor) Models

Consignment clients and the scrape-source configuration they own.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
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

if TYPE_CHECKING:
    from coinshop.models.product import Product
    from coinshop.models.user import User


class ClientStatus(str, enum.Enum):
    """Consignment relationship status."""

    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    TERMINATED = "terminated"


class SourceType(str, enum.Enum):
    """Kind of external storefront a client source points at."""

    WEBSITE = "website"
    EBAY_STORE = "ebay_store"
    ETSY_SHOP = "etsy_shop"
    SHOPIFY = "shopify"
    SQUARESPACE = "squarespace"
    WOOCOMMERCE = "woocommerce"
    AUCTIONZIP = "auctionzip"
    HIBID = "hibid"
    PROXIBID = "proxibid"
    CSV_IMPORT = "csv_import"
    API = "api"


class Client(Base):
    """
    A consignor whose items the shop sells for a commission.

    Attributes:
        slug: URL-safe unique handle derived from the name
        commission_rate: Percentage kept by the shop on each sale
    """

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("15.00"),
        nullable=False,
    )
    status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus),
        default=ClientStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
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
    users: Mapped[list["User"]] = relationship(
        "User",
        back_populates="client",
        passive_deletes=True,
    )
    sources: Mapped[list["ClientSource"]] = relationship(
        "ClientSource",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    products: Mapped[list["Product"]] = relationship(
        "Product",
        back_populates="client",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Client {self.slug}>"


class ClientSource(Base):
    """Scrape target configuration owned by a client."""

    __tablename__ = "client_sources"

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
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[SourceType] = mapped_column(Enum(SourceType), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    scrape_frequency: Mapped[int] = mapped_column(
        Integer,
        default=60,  # minutes
        nullable=False,
    )
    selectors: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    config: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    last_scraped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
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

    client: Mapped["Client"] = relationship("Client", back_populates="sources")

    def __repr__(self) -> str:
        return f"<ClientSource {self.name} ({self.type.value})>"
