"""
Domain exceptions and their HTTP rendering.

Every error carries an HTTP status and a stable machine-readable code.
Storage errors are raised only after the surrounding transaction has been
rolled back, so the response tells the caller whether anything was
attempted (``rolled_back``) or nothing changed at all.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ticketbooth.core.logging import get_logger

logger = get_logger(__name__)


class BookingSystemError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "ERROR"
    rolled_back: bool = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body = {"detail": self.message, "code": self.code, "rolled_back": self.rolled_back}
        body.update(self.details)
        return body


class ValidationError(BookingSystemError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthenticationError(BookingSystemError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_ERROR"


class ForbiddenError(BookingSystemError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"

    def __init__(self, message: str = "You are not authorized to perform this action"):
        super().__init__(message)


class NotFoundError(BookingSystemError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class BookingNotFoundError(BookingSystemError):
    # A cancel without a booking is a bad request against an existing event
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BOOKING_NOT_FOUND"

    def __init__(self, message: str = "Booking not found"):
        super().__init__(message)


class ConflictError(BookingSystemError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class StorageError(BookingSystemError):
    """A transaction failed and was rolled back."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "OPERATION_FAILED"
    rolled_back = True
    retryable = False

    def __init__(self, message: str = "Operation failed", cause: Optional[BaseException] = None):
        self.cause = cause
        details = {"retryable": self.retryable}
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, details)


class LockTimeoutError(StorageError):
    status_code = status.HTTP_409_CONFLICT
    code = "LOCK_TIMEOUT"
    retryable = True


class CapacityInvariantError(StorageError):
    code = "CAPACITY_INVARIANT"


class UpstreamError(Exception):
    """Notification delivery failed. Logged by the sink, never surfaced to callers."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


async def booking_error_handler(request: Request, exc: BookingSystemError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code, error=exc.message, cause=exc.details.get("cause"))
    else:
        logger.info("request_rejected", code=exc.code, error=exc.message)

    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info("request_rejected", code=ValidationError.code, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request",
            "code": ValidationError.code,
            "rolled_back": False,
            "errors": errors,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingSystemError, booking_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
