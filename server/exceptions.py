"""
API Error Handling Module
=========================

Standardized error response format across all API endpoints.

This module provides:
- ErrorResponse Pydantic model for consistent error responses
- APIError classes for transport-level errors
- Exception handlers for FastAPI integration, including the mapping of
  installer errors to HTTP status codes

Installer errors raised by a request:
- UnknownFeatureError -> 404
- InvalidOptionsError -> 422
- RegistryError -> 500
- any other StackforgeError -> 400

Precondition, conflict and step failures are not errors at this layer: they
come back as 200 responses carrying the structured outcome.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from stackforge.errors import (
    InvalidOptionsError,
    RegistryError,
    StackforgeError,
    UnknownFeatureError,
)

_logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """
    Standardized API error response format.

    Example:
        {
            "error_code": "UNKNOWN_FEATURE",
            "message": "Unknown feature: 'blog'",
            "details": {"feature": "blog"}
        }
    """

    error_code: str = Field(
        ...,
        description="Machine-readable error code for programmatic handling",
        examples=["NOT_FOUND", "VALIDATION_ERROR", "UNKNOWN_FEATURE"]
    )

    message: str = Field(
        ...,
        description="Human-readable error message",
    )

    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional additional error details (field errors, context, etc.)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_code": "UNKNOWN_FEATURE",
                "message": "Unknown feature: 'blog'",
                "details": {"feature": "blog"}
            }
        }
    )


# =============================================================================
# Error Codes
# =============================================================================


class ErrorCode:
    """Transport-level error codes. Installer errors use their own codes."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Custom Exception Classes
# =============================================================================


class APIError(Exception):
    """Base class for transport-level API exceptions."""

    def __init__(
        self,
        error_code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=self.details
        )


class BadRequestError(APIError):
    """
    Generic bad request error.

    Example:
        raise BadRequestError("project_path must be absolute")
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            error_code=ErrorCode.BAD_REQUEST,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


# =============================================================================
# Exception Handlers
# =============================================================================


def create_error_response(
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Create a standardized error response dictionary."""
    response = {
        "error_code": error_code,
        "message": message
    }
    if details is not None:
        response["details"] = details
    return response


def status_for_installer_error(exc: StackforgeError) -> int:
    if isinstance(exc, UnknownFeatureError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InvalidOptionsError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, RegistryError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True)
    )


async def installer_error_handler(request: Request, exc: StackforgeError) -> JSONResponse:
    """Map installer errors raised by a request to status codes."""
    status_code = status_for_installer_error(exc)
    if status_code >= 500:
        _logger.error("Installer error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details or None
        )
    )


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Convert request body validation errors to the standard format."""
    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        # Skip 'body' prefix if present
        field_parts = [str(p) for p in loc if p != "body"]
        field = ".".join(field_parts) if field_parts else "unknown"

        errors.append({
            "field": field,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error")
        })

    if len(errors) == 1:
        message = f"Validation error on field '{errors[0]['field']}': {errors[0]['message']}"
    else:
        message = f"Validation failed with {len(errors)} errors"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=create_error_response(
            error_code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={"errors": errors}
        )
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """Wrap HTTPException in the standard format, keeping its status code."""
    status_to_code = {
        400: ErrorCode.BAD_REQUEST,
        404: ErrorCode.NOT_FOUND,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }
    error_code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = str(exc.detail) if exc.detail else "An error occurred"

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(error_code=error_code, message=message)
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Example:
        from server.exceptions import register_exception_handlers

        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StackforgeError, installer_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)


__all__ = [
    "ErrorResponse",
    "ErrorCode",
    "APIError",
    "BadRequestError",
    "api_error_handler",
    "installer_error_handler",
    "validation_error_handler",
    "http_exception_handler",
    "create_error_response",
    "status_for_installer_error",
    "register_exception_handlers",
]
