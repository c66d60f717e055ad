"""Domain models and error taxonomy."""

from medbook.models.errors import (
    AppointmentNotFound,
    BookingError,
    BookingFailure,
    ErrorType,
    NotificationDeliveryFailure,
    PatientNotFound,
    ProviderNotFound,
    RequestValidationError,
    SlotConflict,
    UpstreamServiceError,
)
from medbook.models.schemas import (
    Appointment,
    AppointmentStatus,
    AvailabilityReason,
    AvailabilityResult,
    BookedAppointment,
    BookingChannel,
    ExtractedRequest,
    Notification,
    Patient,
    Provider,
    RecurringAvailability,
    Role,
    SlotStatus,
    User,
)

__all__ = [
    # Errors
    "AppointmentNotFound",
    "BookingError",
    "BookingFailure",
    "ErrorType",
    "NotificationDeliveryFailure",
    "PatientNotFound",
    "ProviderNotFound",
    "RequestValidationError",
    "SlotConflict",
    "UpstreamServiceError",
    # Domain
    "Appointment",
    "AppointmentStatus",
    "AvailabilityReason",
    "AvailabilityResult",
    "BookedAppointment",
    "BookingChannel",
    "ExtractedRequest",
    "Notification",
    "Patient",
    "Provider",
    "RecurringAvailability",
    "Role",
    "SlotStatus",
    "User",
]
