"""
CoinShop API - Metals Spot Price Endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_metals_service, require_staff
from coinshop.core.database import get_db
from coinshop.models.user import User
from coinshop.schemas.metals import MetalPricesResponse
from coinshop.services.metals import MetalsPriceService

router = APIRouter(prefix="/metals", tags=["metals"])


@router.get("", response_model=MetalPricesResponse)
async def get_metal_prices(
    service: MetalsPriceService = Depends(get_metals_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Spot prices for the storefront ticker.

    Served from a 5 minute cache; on feed failure the last stored prices
    (or static prices) are returned with `source` saying which.
    """
    prices = await service.get_prices(db)
    return MetalPricesResponse.model_validate(prices)


@router.post("/refresh", response_model=MetalPricesResponse)
async def refresh_metal_prices(
    user: User = Depends(require_staff),
    service: MetalsPriceService = Depends(get_metals_service),
    db: AsyncSession = Depends(get_db),
):
    prices = await service.refresh(db)
    return MetalPricesResponse.model_validate(prices)
