"""
CoinShop - Grading Training Data Schemas
"""

from pydantic import BaseModel, ConfigDict


class TrainingEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    image: str
    type: str
    date: str
    mint: str
    grade: str
    notes: str
    captured_at: str


class TrainingListResponse(BaseModel):
    entries: list[TrainingEntryResponse]
    total: int


class TrainingStatsResponse(BaseModel):
    total: int
    by_type: dict[str, int]
    by_grade: dict[str, int]
