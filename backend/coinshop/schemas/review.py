"""
CoinShop - Seller Review Schemas
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.schemas.common import PaginationMeta


class ReviewCreate(BaseModel):
    """Ratings are validated again by the service (1-5)."""

    order_id: UUID
    overall_rating: int
    item_as_described: int
    shipping_speed: int
    communication: int
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    seller_id: UUID
    reviewer_id: UUID
    reviewer_name: Optional[str] = None
    order_id: UUID
    overall_rating: int
    item_as_described: int
    shipping_speed: int
    communication: int
    comment: Optional[str] = None
    helpful_count: int
    created_at: datetime


class ReviewListResponse(BaseModel):
    data: list[ReviewResponse]
    meta: PaginationMeta


class RatingSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    seller_id: UUID
    total_reviews: int
    average_rating: float
    average_item_as_described: float
    average_shipping_speed: float
    average_communication: float
    distribution: dict[int, int]


class PendingReviewItem(BaseModel):
    order_id: UUID
    order_number: str
    delivered_at: Optional[datetime] = None
    titles: list[str]


class HelpfulResponse(BaseModel):
    review_id: UUID
    helpful_count: int
