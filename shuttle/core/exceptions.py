"""
Typed errors raised by the booking engine and the catalog services.

Every error carries a machine-readable ``error_code`` and the HTTP status the
API layer answers with. Services raise these; ``register_exception_handlers``
turns them into JSON responses.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shuttle.core.logging import get_logger

logger = get_logger(__name__)


class ShuttleError(Exception):
    """Base class for all domain errors."""

    error_code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(ShuttleError):
    error_code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource.capitalize()} not found"
        if resource_id is not None:
            message = f"{resource.capitalize()} {resource_id} not found"
        super().__init__(message, {"resource": resource, "id": resource_id})


class ConflictError(ShuttleError):
    """Seat already held, payment already uploaded, duplicate catalog entry."""

    error_code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(ShuttleError):
    error_code = "INVALID_STATE"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, current: Optional[str] = None, expected: Optional[str] = None):
        details = {}
        if current is not None:
            details["current_status"] = current
        if expected is not None:
            details["expected_status"] = expected
        super().__init__(message, details)


class ExpiredError(ShuttleError):
    error_code = "BOOKING_EXPIRED"
    status_code = status.HTTP_410_GONE


class ValidationError(ShuttleError):
    error_code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class UploadRejectedError(ValidationError):
    """Payment proof file refused at the boundary (size, type, empty)."""

    error_code = "INVALID_UPLOAD"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InternalError(ShuttleError):
    pass


class AuthenticationError(ShuttleError):
    error_code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(ShuttleError):
    error_code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


def _error_response(status_code: int, body: dict[str, Any], headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def shuttle_error_handler(request: Request, exc: ShuttleError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.error_code, error=exc.message)
    return _error_response(exc.status_code, exc.to_dict(), headers)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("integrity_error", error=str(exc.orig))
    return _error_response(
        status.HTTP_409_CONFLICT,
        {"code": ConflictError.error_code, "message": "Request conflicts with existing data"},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database_error", error=str(exc))
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"code": InternalError.error_code, "message": "Storage operation failed"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShuttleError, shuttle_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
