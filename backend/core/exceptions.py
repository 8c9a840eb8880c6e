"""
Custom exception handlers for consistent API error responses.

This module provides the base API error and the handlers that render every
error in the standard response envelope.
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

from .response_models import StandardResponse, ErrorDetail

logger = logging.getLogger(__name__)


class APIError(HTTPException):
    """Base API error with consistent structure"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.context = context or {}

    def __str__(self) -> str:
        return str(self.detail)


def _error_response(
    status_code: int,
    message: str,
    code: str,
    context: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = StandardResponse.error(
        message=message,
        code=code,
        errors=[ErrorDetail(code=code, message=message, context=context or None)],
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=headers,
    )


async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Convert ValueError to consistent API response"""
    logger.warning(f"ValueError at {request.url.path}: {str(exc)}")
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "VALIDATION_ERROR")


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors"""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} at {request.url.path}: {exc.detail}")
    return _error_response(
        exc.status_code,
        str(exc.detail),
        exc.error_code or "ERROR",
        context=exc.context,
        headers=exc.headers,
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(ValueError, handle_value_error)
    app.add_exception_handler(APIError, handle_api_error)
