"""
CoinShop - Shared Schemas
"""

from pydantic import BaseModel, Field


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses."""

    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1, le=100)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)

    @classmethod
    def create(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        """Factory method to create pagination metadata."""
        total_pages = (total + per_page - 1) // per_page if per_page > 0 else 0
        return cls(page=page, per_page=per_page, total=total, total_pages=total_pages)


class MessageResponse(BaseModel):
    message: str
