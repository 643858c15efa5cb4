"""
CoinShop API - Grading Training Data Endpoints (staff)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse

from coinshop.api.deps import get_training_store, require_staff
from coinshop.models.user import User
from coinshop.schemas.training import (
    TrainingEntryResponse,
    TrainingListResponse,
    TrainingStatsResponse,
)
from coinshop.services.training import TrainingDataStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/training", tags=["training"])


@router.get("", response_model=TrainingListResponse)
async def get_entries(
    user: User = Depends(require_staff),
    store: TrainingDataStore = Depends(get_training_store),
):
    entries = store.list_entries()
    return TrainingListResponse(
        entries=[TrainingEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.post("", response_model=TrainingEntryResponse, status_code=status.HTTP_201_CREATED)
async def upload_entry(
    image: Optional[UploadFile] = File(None),
    type: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    grade: Optional[str] = Form(None),
    mint: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    user: User = Depends(require_staff),
    store: TrainingDataStore = Depends(get_training_store),
):
    """
    Save a labelled grading photo.

    Multipart form with `image`, `type`, `date` and `grade` required;
    `mint` defaults to P.
    """
    content = await image.read() if image is not None else None
    entry = store.add_entry(
        image=content,
        filename=image.filename if image is not None else None,
        type=type,
        date=date,
        grade=grade,
        mint=mint,
        notes=notes,
    )
    return TrainingEntryResponse.model_validate(entry)


@router.get("/stats", response_model=TrainingStatsResponse)
async def get_stats(
    user: User = Depends(require_staff),
    store: TrainingDataStore = Depends(get_training_store),
):
    return TrainingStatsResponse(**store.stats())


@router.get("/images/{image_path:path}")
async def get_image(
    image_path: str,
    user: User = Depends(require_staff),
    store: TrainingDataStore = Depends(get_training_store),
):
    return FileResponse(store.image_path(image_path))
