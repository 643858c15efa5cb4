"""
CoinShop - Product Price History

Chart points and summary stats over a product's recorded prices.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.core.clock import ensure_utc, utcnow
from coinshop.core.exceptions import NotFoundError, ValidationError
from coinshop.models.product import PriceHistory, Product

PERIODS: dict[str, Optional[timedelta]] = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
    "all": None,
}

# Percent change beyond which a trend counts as up/down
TREND_THRESHOLD = 2.0


@dataclass
class PricePoint:
    date: datetime
    price: Decimal
    source: str


@dataclass
class PriceStats:
    current: float
    high: float
    low: float
    average: float
    change: float
    change_percent: float
    trend: str  # up | down | stable


def compute_stats(points: list[PricePoint], current_price: Optional[Decimal]) -> Optional[PriceStats]:
    """Summary stats; None when there are no points."""
    if not points:
        return None

    prices = [float(p.price) for p in points]
    first = prices[0]
    current = float(current_price) if current_price is not None else prices[-1]
    change = current - first
    change_percent = (change / first) * 100 if first > 0 else 0.0

    if change_percent > TREND_THRESHOLD:
        trend = "up"
    elif change_percent < -TREND_THRESHOLD:
        trend = "down"
    else:
        trend = "stable"

    return PriceStats(
        current=current,
        high=max(prices),
        low=min(prices),
        average=sum(prices) / len(prices),
        change=change,
        change_percent=change_percent,
        trend=trend,
    )


async def get_price_history(
    db: AsyncSession,
    product_id: UUID,
    period: str = "90d",
    now: Optional[datetime] = None,
) -> tuple[list[PricePoint], Optional[PriceStats]]:
    """
    Chronological price points for a product within ``period``.

    The product's current price is appended as a ``current`` point when it
    differs from the last recorded one.
    """
    if period not in PERIODS:
        raise ValidationError(f"Unknown period '{period}'", details={"allowed": list(PERIODS)})

    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    now = now or utcnow()
    query = select(PriceHistory).where(PriceHistory.product_id == product_id)
    window = PERIODS[period]
    if window is not None:
        query = query.where(PriceHistory.created_at >= now - window)
    result = await db.execute(query.order_by(PriceHistory.created_at.asc()))

    points = [
        PricePoint(date=ensure_utc(row.created_at), price=row.price, source=row.reason or "manual")
        for row in result.scalars().all()
    ]

    if points and product.price is not None and points[-1].price != product.price:
        points.append(PricePoint(date=now, price=product.price, source="current"))

    return points, compute_stats(points, product.price)
