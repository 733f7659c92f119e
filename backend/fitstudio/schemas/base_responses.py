"""
Response envelope shared by every endpoint.

Success bodies are ``{"success": true, "data": ...}`` (plus ``meta`` for
paginated lists); errors are ``{"success": false, "error": {...}}`` and are
built by the exception handlers in ``fitstudio.errors``.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from ._strict_base import StrictModel

T = TypeVar("T")


class PaginationMeta(StrictModel):
    page: int = Field(ge=1)
    per_page: int = Field(ge=1)
    total: int = Field(ge=0)
    total_pages: int = Field(ge=0)


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class PaginatedApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T
    meta: PaginationMeta


class ErrorBody(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
