"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InputValidationError(AppException):
    """Raised when ledger input is malformed. No state is mutated."""

    def __init__(self, message: str = "Validation error", errors: Dict[str, str] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": errors or {}}
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised when an operation would break referential integrity."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ConcurrentUpdateError(AppException):
    """Raised when a balance write keeps losing the optimistic version race."""

    def __init__(self, client_id: Any, attempts: int):
        super().__init__(
            message=f"Balance of client {client_id} changed concurrently, gave up after {attempts} attempts",
            error_code="ERR_CONFLICT_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"client_id": client_id, "attempts": attempts}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors, reported per field."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": errors
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception_type": type(exc).__name__}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
