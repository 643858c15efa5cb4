"""
CoinShop API - Seller Review Endpoints
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_current_user_or_api_key
from coinshop.core.clock import ensure_utc
from coinshop.core.database import get_db
from coinshop.models.review import SellerReview
from coinshop.models.user import User
from coinshop.schemas.common import PaginationMeta
from coinshop.schemas.review import (
    HelpfulResponse,
    PendingReviewItem,
    RatingSummaryResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
)
from coinshop.services.reviews import (
    create_review,
    get_pending_reviews,
    get_seller_rating_summary,
    get_seller_reviews,
    mark_review_helpful,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reviews"])


def _review_response(review: SellerReview, reviewer_name=None) -> ReviewResponse:
    response = ReviewResponse.model_validate(review)
    response.reviewer_name = reviewer_name
    response.created_at = ensure_utc(review.created_at)
    return response


@router.post("/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def submit_review(
    data: ReviewCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """
    Review the seller of a delivered order. One review per order.
    """
    review = await create_review(
        db,
        reviewer=user,
        order_id=data.order_id,
        overall_rating=data.overall_rating,
        item_as_described=data.item_as_described,
        shipping_speed=data.shipping_speed,
        communication=data.communication,
        comment=data.comment,
    )
    return _review_response(review, user.name)


@router.get("/reviews/pending", response_model=list[PendingReviewItem])
async def pending_reviews(
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Delivered orders still waiting for the user's review."""
    orders = await get_pending_reviews(db, user)
    return [
        PendingReviewItem(
            order_id=order.id,
            order_number=order.order_number,
            delivered_at=ensure_utc(order.delivered_at),
            titles=[item.title for item in order.items],
        )
        for order in orders
    ]


@router.post("/reviews/{review_id}/helpful", response_model=HelpfulResponse)
async def helpful(
    review_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    count = await mark_review_helpful(db, review_id)
    return HelpfulResponse(review_id=review_id, helpful_count=count)


@router.get("/sellers/{seller_id}/reviews", response_model=ReviewListResponse)
async def seller_reviews(
    seller_id: UUID,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    reviews, total = await get_seller_reviews(db, seller_id, page=page, per_page=per_page)
    return ReviewListResponse(
        data=[_review_response(r, r.reviewer.name if r.reviewer else None) for r in reviews],
        meta=PaginationMeta.create(page=page, per_page=per_page, total=total),
    )


@router.get("/sellers/{seller_id}/rating", response_model=RatingSummaryResponse)
async def seller_rating(
    seller_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Average ratings and the 1-5 star distribution for a seller."""
    summary = await get_seller_rating_summary(db, seller_id)
    return RatingSummaryResponse.model_validate(summary)
