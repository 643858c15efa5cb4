"""
CoinShop API - AI Analysis Endpoint

Identification, grading and pricing of an item from photos and details,
grounded on recent comparable sales.
"""

import logging

from fastapi import APIRouter, Depends

from coinshop.api.deps import get_ai_analyzer, get_comparables_searcher, require_staff
from coinshop.models.user import User
from coinshop.schemas.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    ComparableResponse,
    MarketStatsResponse,
)
from coinshop.services.ai_analyzer import AIAnalyzer, describe_item
from coinshop.services.comparables import ComparablesSearcher, calculate_market_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

COMPARABLES_RETURNED = 5


def comparables_query(data: AnalysisRequest) -> str:
    """Search terms for sold listings: year, mint, title and grade."""
    parts = [str(data.year) if data.year else None, data.mint, data.title, data.grade]
    return " ".join(p for p in parts if p)


@router.post("", response_model=AnalysisResponse)
async def analyze_item(
    data: AnalysisRequest,
    user: User = Depends(require_staff),
    analyzer: AIAnalyzer = Depends(get_ai_analyzer),
    searcher: ComparablesSearcher = Depends(get_comparables_searcher),
):
    """
    Analyze an item.

    Comparable search failures are tolerated (empty market stats); an
    analyzer failure answers 500 `Analysis failed`.
    """
    comparables = await searcher.search(comparables_query(data))
    stats = calculate_market_stats(comparables)

    result = await analyzer.analyze(
        data.images,
        describe_item(
            title=data.title,
            description=data.description,
            category=data.category,
            year=data.year,
            mint=data.mint,
            grade=data.grade,
            certification=data.certification,
        ),
        comparables=[c.to_dict() for c in comparables],
    )

    return AnalysisResponse(
        analysis=result.to_dict(),
        market_stats=MarketStatsResponse.model_validate(stats),
        comparables=[
            ComparableResponse.model_validate(c) for c in comparables[:COMPARABLES_RETURNED]
        ],
    )
