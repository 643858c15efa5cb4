"""
CoinShop API - Consignment Submission Endpoints

Consignors submit items; staff review them and attach AI valuations.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_ai_analyzer, get_current_user_or_api_key, require_staff
from coinshop.core.database import get_db
from coinshop.models.submission import SubmissionStatus
from coinshop.models.user import User
from coinshop.schemas.submission import (
    SubmissionCreate,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionStatusUpdate,
)
from coinshop.services.ai_analyzer import AIAnalyzer
from coinshop.services.submissions import (
    analyze_submission,
    create_submission,
    get_submission,
    list_submissions,
    transition_submission,
)

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_item(
    data: SubmissionCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    submission = await create_submission(
        db,
        user,
        title=data.title,
        description=data.description,
        category=data.category,
        image_urls=data.image_urls,
    )
    return SubmissionResponse.model_validate(submission)


@router.get("", response_model=SubmissionListResponse)
async def get_submissions(
    submission_status: Optional[SubmissionStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Own submissions for consignors; every submission for staff."""
    submissions = await list_submissions(db, user, status=submission_status)
    return SubmissionListResponse(
        data=[SubmissionResponse.model_validate(s) for s in submissions],
        total=len(submissions),
    )


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission_detail(
    submission_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    submission = await get_submission(db, submission_id, user)
    return SubmissionResponse.model_validate(submission)


@router.patch("/{submission_id}/status", response_model=SubmissionResponse)
async def update_submission_status(
    submission_id: UUID,
    data: SubmissionStatusUpdate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Move a submission along the review workflow; illegal moves answer 409."""
    submission = await transition_submission(
        db, submission_id, user, data.status, notes=data.notes
    )
    return SubmissionResponse.model_validate(submission)


@router.post("/{submission_id}/analyze", response_model=SubmissionResponse)
async def analyze(
    submission_id: UUID,
    user: User = Depends(require_staff),
    analyzer: AIAnalyzer = Depends(get_ai_analyzer),
    db: AsyncSession = Depends(get_db),
):
    """Run the AI valuation and attach it. On failure nothing is changed."""
    submission = await analyze_submission(db, submission_id, user, analyzer)
    return SubmissionResponse.model_validate(submission)
