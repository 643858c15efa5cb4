"""
CoinShop - Consignment Submission Service

Consignors submit items with photos; staff move them through review and
can attach an AI valuation.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.clock import utcnow
from coinshop.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UpstreamError,
    ValidationError,
)
from coinshop.models.submission import (
    SUBMISSION_TRANSITIONS,
    Submission,
    SubmissionImage,
    SubmissionStatus,
)
from coinshop.models.user import User
from coinshop.services.ai_analyzer import AIAnalyzer, describe_item

logger = logging.getLogger(__name__)


def _money(value: Optional[float]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))


async def create_submission(
    db: AsyncSession,
    user: User,
    title: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
    image_urls: Optional[list[str]] = None,
) -> Submission:
    """
    Create a pending submission for the user's consignment client.

    Raises:
        PermissionDeniedError: user is not linked to a client
        ValidationError: empty title
    """
    if user.client_id is None:
        raise PermissionDeniedError("Only consignment clients can submit items")
    if not title or not title.strip():
        raise ValidationError("Title is required")

    submission = Submission(
        client_id=user.client_id,
        title=title.strip(),
        description=description,
        category=category,
        status=SubmissionStatus.PENDING,
    )
    submission.images = [
        SubmissionImage(url=url, sort_order=i) for i, url in enumerate(image_urls or [])
    ]
    db.add(submission)
    await db.flush()

    logger.info(f"Submission {submission.id} created by client {user.client_id}")
    return submission


async def get_submission(db: AsyncSession, submission_id: UUID, user: User) -> Submission:
    """Submission with images; consignors only see their own."""
    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .options(selectinload(Submission.images))
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Submission not found")
    if not user.is_staff and submission.client_id != user.client_id:
        raise PermissionDeniedError("You can only view your own submissions")
    return submission


async def list_submissions(
    db: AsyncSession,
    user: User,
    status: Optional[SubmissionStatus] = None,
) -> list[Submission]:
    """All submissions for staff, the client's own otherwise; newest first."""
    query = select(Submission).options(selectinload(Submission.images))
    if not user.is_staff:
        if user.client_id is None:
            return []
        query = query.where(Submission.client_id == user.client_id)
    if status is not None:
        query = query.where(Submission.status == status)

    result = await db.execute(query.order_by(Submission.created_at.desc()))
    return list(result.scalars().all())


async def transition_submission(
    db: AsyncSession,
    submission_id: UUID,
    user: User,
    new_status: SubmissionStatus,
    notes: Optional[str] = None,
) -> Submission:
    """
    Move a submission along the review workflow.

    Raises:
        ConflictError: transition not allowed from the current status
    """
    submission = await get_submission(db, submission_id, user)
    allowed = SUBMISSION_TRANSITIONS[submission.status]
    if new_status not in allowed:
        raise ConflictError(
            f"Cannot move submission from {submission.status.value} to {new_status.value}",
            details={"allowed": sorted(s.value for s in allowed)},
        )

    submission.status = new_status
    if notes is not None:
        submission.reviewer_notes = notes
    await db.flush()

    logger.info(f"Submission {submission.id} -> {new_status.value}")
    return submission


async def analyze_submission(
    db: AsyncSession,
    submission_id: UUID,
    user: User,
    analyzer: AIAnalyzer,
) -> Submission:
    """
    Run the AI analyzer over a submission and attach the result.

    The submission is only modified after the analysis call succeeds.

    Raises:
        UpstreamError: analyzer failed (submission left untouched)
    """
    submission = await get_submission(db, submission_id, user)
    text = describe_item(
        title=submission.title,
        description=submission.description,
        category=submission.category,
    )

    try:
        result = await analyzer.analyze([img.url for img in submission.images], text)
    except UpstreamError:
        logger.error(f"AI analysis failed for submission {submission.id}")
        raise

    submission.ai_analysis = result.to_dict()
    submission.estimated_value = _money(result.estimated_value)
    submission.suggested_price = _money(result.recommended_price)
    submission.analyzed_at = utcnow()
    await db.flush()

    logger.info(f"Attached AI analysis to submission {submission.id}")
    return submission
