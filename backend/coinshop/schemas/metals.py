"""
CoinShop - Metals Price Schemas
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MetalPricesResponse(BaseModel):
    """Spot prices per troy ounce."""

    model_config = ConfigDict(from_attributes=True)

    gold: float
    silver: float
    platinum: float
    palladium: float
    timestamp: datetime
    currency: str
    source: str = Field(..., description="live, cache, database or fallback")
