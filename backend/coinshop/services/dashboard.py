"""
CoinShop - Admin Dashboard Statistics
"""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.core.clock import utcnow
from coinshop.models.auction import Auction, AuctionStatus
from coinshop.models.client import Client, ClientStatus
from coinshop.models.order import PAID_STATUSES, Order
from coinshop.models.product import Product
from coinshop.models.submission import Submission


async def _counts_by(db: AsyncSession, column) -> dict[str, int]:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {status.value: count for status, count in result.all()}


async def get_dashboard_stats(db: AsyncSession) -> dict[str, Any]:
    """Headline numbers for the admin dashboard."""
    now = utcnow()

    active_auctions = (
        await db.execute(
            select(func.count())
            .select_from(Auction)
            .where(Auction.status == AuctionStatus.ACTIVE, Auction.end_time > now)
        )
    ).scalar() or 0

    active_clients = (
        await db.execute(
            select(func.count()).select_from(Client).where(Client.status == ClientStatus.ACTIVE)
        )
    ).scalar() or 0

    revenue: Optional[Decimal] = (
        await db.execute(select(func.sum(Order.total)).where(Order.status.in_(PAID_STATUSES)))
    ).scalar()

    return {
        "products": await _counts_by(db, Product.status),
        "auctions": {
            "active": active_auctions,
            "by_status": await _counts_by(db, Auction.status),
        },
        "submissions": await _counts_by(db, Submission.status),
        "orders": await _counts_by(db, Order.status),
        "active_clients": active_clients,
        "revenue": float(revenue or 0),
    }
