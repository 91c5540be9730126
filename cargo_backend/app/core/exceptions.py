"""
Custom exceptions and error handlers for consistent error responses.

Every failure of a single-item tracking operation surfaces as one of the
typed exceptions below; the global handlers render them as
``{"error_code", "message", "details"}``.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("cargo.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when the actor's role may not perform the action (Forbidden)."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """
    Raised when requested resource is not found.

    Also used for items outside the caller's branch scope, so existence is
    never leaked across branches.
    """

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised when a tracking code is already held by an active item."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class InvalidTransitionError(AppException):
    """Raised for backward, stagnant or cancelled status changes."""

    def __init__(self, current_status: Any, target_status: Any, message: str = None):
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        super().__init__(
            message=message or f"Cannot change status from {current} to {target}",
            error_code="ERR_TRANSITION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"current_status": current, "target_status": target}
        )


class ConcurrentStatusChangeError(InvalidTransitionError):
    """Raised when the item's status changed between read and conditional write."""

    def __init__(self, current_status: Any, target_status: Any):
        super().__init__(
            current_status,
            target_status,
            message="Tracking item status was changed by another request, reload and retry"
        )


class InvalidRequestError(AppException):
    """Raised for input-level problems detected before any ledger is touched."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_BAD_REQUEST_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidImportFileError(InvalidRequestError):
    """Raised when an uploaded spreadsheet cannot be read."""

    def __init__(self, file_name: str, reason: str):
        super().__init__(
            message=f"Cannot read import file '{file_name}': {reason}",
            details={"file_name": file_name}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
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
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
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
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSON cannot encode
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
