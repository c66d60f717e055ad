"""Error taxonomy for the booking engine.

Exceptions are raised inside the engine and converted into a typed
``BookingFailure`` at the edges (pipeline, API) so callers can render a
specific next action instead of a generic message.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Categories of failures surfaced to callers."""

    VALIDATION_ERROR = "validation_error"  # Missing/malformed date, time, ids
    PROVIDER_NOT_FOUND = "provider_not_found"  # Resolver found no confident match
    DAY_INACTIVE = "day_inactive"  # No active schedule for the weekday
    TIME_OUT_OF_BOUNDS = "time_out_of_bounds"  # Not one of the generated slots
    FULLY_BOOKED = "fully_booked"  # Valid slot, already reserved
    SLOT_CONFLICT = "slot_conflict"  # Lost the race at commit time
    NOT_FOUND = "not_found"  # Appointment/patient missing or not owned
    UPSTREAM_ERROR = "upstream_error"  # Transcription/extraction failed
    TIMEOUT = "timeout"  # Remote call exceeded its bound
    NOTIFICATION_FAILURE = "notification_failure"  # Never propagated


class BookingError(Exception):
    """Base class for engine errors.

    Attributes:
        error_type: Category used for the typed result
        retryable: Whether the caller may simply try again
        details: Extra context for diagnostics
    """

    error_type: ErrorType = ErrorType.VALIDATION_ERROR
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RequestValidationError(BookingError):
    """A required field is missing or malformed."""

    error_type = ErrorType.VALIDATION_ERROR


class ProviderNotFound(BookingError):
    """No provider matched the search term confidently."""

    error_type = ErrorType.PROVIDER_NOT_FOUND

    def __init__(self, search_term: str | None, details: dict[str, Any] | None = None):
        term = search_term or "unknown"
        super().__init__(f"No doctor found for: {term}", details)
        self.search_term = term
        self.details.setdefault("search_term", term)


class SlotConflict(BookingError):
    """The slot already holds a requested/confirmed appointment."""

    error_type = ErrorType.SLOT_CONFLICT

    def __init__(
        self,
        message: str = "This doctor already has an appointment at the selected time",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)


class AppointmentNotFound(BookingError):
    """Appointment does not exist or is not owned by the caller."""

    error_type = ErrorType.NOT_FOUND


class PatientNotFound(BookingError):
    """No patient profile for the given identity."""

    error_type = ErrorType.NOT_FOUND


class UpstreamServiceError(BookingError):
    """Transcription or extraction service failed."""

    error_type = ErrorType.UPSTREAM_ERROR
    retryable = True

    def __init__(
        self,
        service: str,
        message: str,
        timed_out: bool = False,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.service = service
        self.timed_out = timed_out
        self.details.setdefault("service", service)
        if timed_out:
            self.error_type = ErrorType.TIMEOUT


class NotificationDeliveryFailure(BookingError):
    """Notification insert failed. Logged and swallowed by the committer."""

    error_type = ErrorType.NOTIFICATION_FAILURE


class BookingFailure(BaseModel):
    """Structured failure returned to the UI layer."""

    type: ErrorType = Field(description="Category of failure")
    message: str = Field(description="Human-readable message")
    retryable: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=datetime.now)
    details: dict[str, Any] = Field(default_factory=dict)
    alternatives: list[str] = Field(
        default_factory=list, description="Open slots to offer instead"
    )

    @classmethod
    def from_exception(
        cls,
        e: Exception,
        alternatives: list[str] | None = None,
    ) -> "BookingFailure":
        """Create a BookingFailure from an exception.

        Engine errors keep their own category; anything else is treated as
        an upstream failure so the user is prompted to retry.

        Args:
            e: The exception that occurred
            alternatives: Optional open slots to suggest

        Returns:
            BookingFailure instance
        """
        if isinstance(e, BookingError):
            return cls(
                type=e.error_type,
                message=e.message,
                retryable=e.retryable,
                details={"exception_type": type(e).__name__, **e.details},
                alternatives=alternatives or [],
            )

        return cls(
            type=ErrorType.UPSTREAM_ERROR,
            message=str(e),
            retryable=True,
            details={"exception_type": type(e).__name__},
            alternatives=alternatives or [],
        )
