"""
CoinShop API - Admin Dashboard Endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import require_staff
from coinshop.core.database import get_db
from coinshop.models.user import User
from coinshop.services.dashboard import get_dashboard_stats

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/dashboard")
async def dashboard(
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """
    Headline numbers: products, auctions, submissions and orders by
    status, active clients and revenue from paid orders.
    """
    return {"status": "ok", "stats": await get_dashboard_stats(db)}
