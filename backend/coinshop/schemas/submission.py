"""
CoinShop - Consignment Submission Schemas
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coinshop.models.submission import SubmissionStatus


class SubmissionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    image_urls: list[str] = Field(default_factory=list, max_length=20)


class SubmissionStatusUpdate(BaseModel):
    status: SubmissionStatus
    notes: Optional[str] = None


class SubmissionImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    url: str
    sort_order: int


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    status: SubmissionStatus
    ai_analysis: Optional[dict[str, Any]] = None
    estimated_value: Optional[float] = None
    suggested_price: Optional[float] = None
    reviewer_notes: Optional[str] = None
    analyzed_at: Optional[datetime] = None
    images: list[SubmissionImageResponse] = Field(default_factory=list)
    created_at: datetime


class SubmissionListResponse(BaseModel):
    data: list[SubmissionResponse]
    total: int
