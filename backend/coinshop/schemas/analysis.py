"""
CoinShop - AI Analysis Schemas
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalysisRequest(BaseModel):
    images: list[str] = Field(default_factory=list, max_length=4)
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    year: Optional[int] = None
    mint: Optional[str] = None
    grade: Optional[str] = None
    certification: Optional[str] = None


class ComparableResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    price: Optional[float] = None
    url: str
    image: Optional[str] = None


class MarketStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    average: Optional[float] = None
    median: Optional[float] = None
    low: Optional[float] = None
    high: Optional[float] = None


class AnalysisResponse(BaseModel):
    analysis: dict[str, Any]
    market_stats: MarketStatsResponse
    comparables: list[ComparableResponse]
