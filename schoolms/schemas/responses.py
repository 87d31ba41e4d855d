"""Standardized API Response Schemas"""

from typing import Generic, TypeVar, Optional
from pydantic import BaseModel, Field


T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response envelope.

    Example:
        {
            "success": true,
            "data": {...},
            "message": "Operation successful"
        }
    """
    success: bool = True
    data: Optional[T] = None
    message: str = "Operation successful"


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """
    Standard error response envelope.

    Example:
        {
            "success": false,
            "error": {"code": "INVALID_AMOUNT", "message": "..."}
        }
    """
    success: bool = False
    error: ErrorDetail


class PaginationMeta(BaseModel):
    page: int = Field(..., ge=1, description="Current page number")
    page_size: int = Field(..., ge=1, le=100, description="Items per page")
    total: int = Field(..., ge=0, description="Total number of items")
    total_pages: int = Field(..., ge=0, description="Total number of pages")


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated list with metadata"""
    success: bool = True
    data: list[T]
    meta: PaginationMeta
    message: str = "Operation successful"
