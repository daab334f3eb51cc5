"""Centralized error handling for the watchlist API."""

from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from screener.services.errors import (
    DuplicateSymbolError,
    FetchError,
    InvalidFormatError,
    NoDataError,
    StorageError,
    WatchlistError,
)


class ApiError:
    """Standard error codes returned by the API."""

    INVALID_FORMAT = InvalidFormatError.code
    DUPLICATE_SYMBOL = DuplicateSymbolError.code
    FETCH_ERROR = FetchError.code
    NO_DATA = NoDataError.code
    STORAGE_ERROR = StorageError.code
    VALIDATION_ERROR = "VALIDATION_ERROR"


class ErrorResponse:
    """Standardized error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | list[str] | None = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ):
        """
        Initialize error response.

        Args:
            error_code: Standard error code from ApiError
            message: Human-readable error message
            details: Additional error details (field-specific errors, etc.)
            status_code: HTTP status code
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        response = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


def status_for(error: WatchlistError) -> int:
    """HTTP status for a watchlist error."""
    if isinstance(error, InvalidFormatError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, DuplicateSymbolError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, NoDataError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, FetchError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, StorageError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_400_BAD_REQUEST


def create_watchlist_error_response(error: WatchlistError) -> ErrorResponse:
    details = {"symbol": error.symbol} if error.symbol else None
    return ErrorResponse(
        error_code=error.code,
        message=error.message,
        details=details,
        status_code=status_for(error),
    )


def create_validation_error_response(errors: list[dict[str, Any]]) -> ErrorResponse:
    """
    Create standardized validation error response from request validation errors.

    Args:
        errors: List of validation errors from Pydantic

    Returns:
        ErrorResponse with field-specific validation errors
    """
    field_errors = {}
    for error in errors:
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_path] = error["msg"]

    return ErrorResponse(
        error_code=ApiError.VALIDATION_ERROR,
        message="Validation failed for one or more fields",
        details=field_errors,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def watchlist_exception_handler(request: Request, exc: WatchlistError) -> JSONResponse:
    error_response = create_watchlist_error_response(exc)
    return JSONResponse(status_code=error_response.status_code, content=error_response.to_dict())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI request validation errors with the standardized format."""
    error_response = create_validation_error_response(exc.errors())
    return JSONResponse(status_code=error_response.status_code, content=error_response.to_dict())
