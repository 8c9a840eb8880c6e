"""
Standard API Response Models

Provides consistent response envelope for all API endpoints:
``{success, message, data, meta, errors}``.
"""

from typing import TypeVar, Generic, Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


T = TypeVar('T')


class PaginationMeta(BaseModel):
    """Standard pagination metadata"""
    current_page: int = Field(description="Current page number (1-indexed)")
    per_page: int = Field(description="Number of items per page")
    total: int = Field(description="Total number of items")
    total_pages: int = Field(description="Total number of pages")
    has_next: bool = Field(description="Whether there is a next page")
    has_prev: bool = Field(description="Whether there is a previous page")


class ResponseMeta(BaseModel):
    """Metadata for API responses"""
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Response timestamp")
    request_id: Optional[str] = Field(None, description="Request tracking ID")
    pagination: Optional[PaginationMeta] = Field(None, description="Pagination information if applicable")
    version: str = Field(default="1.0", description="API version")


class ErrorDetail(BaseModel):
    """Detailed error information"""
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    field: Optional[str] = Field(None, description="Field that caused the error (for validation errors)")
    context: Optional[Dict[str, Any]] = Field(None, description="Additional error context")


class StandardResponse(BaseModel, Generic[T]):
    """
    Standard response envelope for all API endpoints

    Usage:
        return StandardResponse.success_response(data=link_data)
        return StandardResponse.error(message="Link not found", code="NOT_FOUND")
    """
    success: bool = Field(description="Whether the request was successful")
    data: Optional[T] = Field(None, description="Response payload")
    meta: ResponseMeta = Field(default_factory=ResponseMeta, description="Response metadata")
    errors: List[ErrorDetail] = Field(default_factory=list, description="List of errors if any")
    message: Optional[str] = Field(None, description="Optional status message")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "data": {"id": 1, "synced_version": 3},
                "meta": {"timestamp": "2025-08-14T12:00:00Z", "version": "1.0"},
                "errors": [],
                "message": "Branch synced to version 3",
            }
        }
    )

    @classmethod
    def success_response(
        cls,
        data: Optional[T] = None,
        message: Optional[str] = None,
        pagination: Optional[PaginationMeta] = None,
    ) -> "StandardResponse[T]":
        """Create a successful response"""
        response_meta = ResponseMeta()
        if pagination:
            response_meta.pagination = pagination

        return cls(
            success=True,
            data=data,
            meta=response_meta,
            errors=[],
            message=message,
        )

    @classmethod
    def error(
        cls,
        message: str,
        code: str = "ERROR",
        errors: Optional[List[ErrorDetail]] = None,
    ) -> "StandardResponse[None]":
        """Create an error response"""
        error_list = errors or [ErrorDetail(code=code, message=message)]
        return cls(
            success=False,
            data=None,
            meta=ResponseMeta(),
            errors=error_list,
            message=message,
        )

    @classmethod
    def paginated(
        cls,
        data: List[Any],
        page: int,
        per_page: int,
        total: int,
        message: Optional[str] = None,
    ) -> "StandardResponse[List[Any]]":
        """Create a paginated response"""
        total_pages = (total + per_page - 1) // per_page if per_page > 0 else 0

        pagination = PaginationMeta(
            current_page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

        return cls.success_response(data=data, message=message, pagination=pagination)
