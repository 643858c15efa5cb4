"""
CoinShop - Metal Spot Price Snapshot
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from coinshop.core.clock import utcnow
from coinshop.core.database import Base


class MetalPrice(Base):
    """
    One successful fetch from the spot price feed.

    The newest row is the last-known value served when the feed is down.
    """

    __tablename__ = "metal_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    gold: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    silver: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platinum: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    palladium: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    source: Mapped[str] = mapped_column(String(50), default="metals_api", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<MetalPrice gold={self.gold} silver={self.silver} at {self.created_at}>"
