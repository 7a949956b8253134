# joeyjob/core/errors.py
"""
Booking error taxonomy.

Every error raised out of the booking workflow carries a machine-readable
kind, an HTTP status for the API layer, and a message that is safe to show
to the person booking. ``details`` is for logs only and is never returned
to clients.
"""
import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    CONFIGURATION_ERROR = "configuration_error"
    EXTERNAL_VALIDATION_ERROR = "external_validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    SYSTEM_ERROR = "system_error"


class BookingError(Exception):
    kind: ErrorKind = ErrorKind.SYSTEM_ERROR
    status_code: int = 500
    default_message = "Something went wrong while processing the booking."

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class NotFoundError(BookingError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "The requested resource was not found."


class InvalidStateError(BookingError):
    kind = ErrorKind.INVALID_STATE
    status_code = 400
    default_message = "The booking cannot be processed in its current state."


class NoEligibleEmployeesError(InvalidStateError):
    default_message = "No active employees assigned to this service"


class NoAvailabilityError(InvalidStateError):
    default_message = "No employees available for the selected time slot. Please choose a different time."


class DuplicateSubmissionError(InvalidStateError):
    status_code = 409
    default_message = "This booking is already being processed. Please wait a moment and check your email."


class ConfigurationError(BookingError):
    kind = ErrorKind.CONFIGURATION_ERROR
    status_code = 500
    default_message = "Simpro integration is not configured for this organization. Please contact support."


class ExternalValidationError(BookingError):
    kind = ErrorKind.EXTERNAL_VALIDATION_ERROR
    status_code = 400
    default_message = "Unable to create booking in scheduling system. Please try again or contact support."


class ExternalAuthenticationError(BookingError):
    kind = ErrorKind.AUTHENTICATION_ERROR
    status_code = 401
    default_message = "Scheduling system authentication failed. Please contact support."


class ExternalSystemError(BookingError):
    kind = ErrorKind.SYSTEM_ERROR
    status_code = 500
    default_message = "Failed to integrate with scheduling system. Please try again."


class AvailabilitySourceError(ExternalSystemError):
    status_code = 503
    default_message = "We couldn't check availability right now. Please try again shortly."


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render a BookingError without leaking internal details"""
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    logger.warning(
        f"Booking error ({exc.kind.value}): {exc.message}",
        extra={"correlation_id": correlation_id, "details": exc.details},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
