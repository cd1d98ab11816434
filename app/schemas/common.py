"""
BettsTax Practice - Common Response Schemas

Response envelope shared by every endpoint:

    {"success": true, "data": ..., "message": "..."}

List endpoints add a pagination block with camelCase keys:

    {"pagination": {"currentPage": 1, "pageSize": 20, "totalCount": 42, "totalPages": 3}}
"""

import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class Pagination(BaseModel):
    """Pagination metadata for list responses."""
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage")
    page_size: int = Field(..., alias="pageSize")
    total_count: int = Field(..., alias="totalCount")
    total_pages: int = Field(..., alias="totalPages")

    @classmethod
    def build(cls, page: int, page_size: int, total_count: int) -> "Pagination":
        return cls(
            current_page=page,
            page_size=page_size,
            total_count=total_count,
            total_pages=math.ceil(total_count / page_size) if page_size else 0,
        )


class ApiResponse(BaseModel, Generic[T]):
    """Standard single-item response envelope."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard list response envelope."""
    success: bool = True
    data: List[T] = []
    message: Optional[str] = None
    pagination: Pagination


class MessageResponse(BaseModel):
    """Envelope for operations that return no data."""
    success: bool = True
    message: str
