"""Pydantic models for the booking domain.

Store rows, engine results and HTTP payloads share these models so field
names round-trip unchanged between the engine and the UI layer.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from medbook.config import DEFAULT_SPECIALTY
from medbook.utils.timefmt import (
    normalize_time,
    normalize_weekday,
    parse_date,
    to_minutes,
)


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Identity roles handed out by the identity store."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""

    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @classmethod
    def active(cls) -> tuple["AppointmentStatus", ...]:
        """Statuses that hold a slot."""
        return (cls.REQUESTED, cls.CONFIRMED)

    @property
    def is_terminal(self) -> bool:
        return self in (
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        )


class BookingChannel(str, Enum):
    """Origin of a booking request."""

    VOICE = "voice"
    TEXT = "text"
    MANUAL = "manual"


class AvailabilityReason(str, Enum):
    """Classification of a requested slot."""

    AVAILABLE = "available"
    DAY_INACTIVE = "day_inactive"
    TIME_OUT_OF_BOUNDS = "time_out_of_bounds"
    FULLY_BOOKED = "fully_booked"


# =============================================================================
# Store rows
# =============================================================================


class User(BaseModel):
    """Identity profile mirrored from the identity store."""

    id: str
    email: str
    full_name: str
    role: Role = Role.PATIENT
    created_at: datetime = Field(default_factory=datetime.now)


class Provider(BaseModel):
    """A doctor or specialist who can be booked."""

    id: str
    user_id: str
    name: str = Field(description="Display name, e.g., 'Dr. Sarah Smith'")
    specialty: str = DEFAULT_SPECIALTY


class Patient(BaseModel):
    """Patient profile owned by an identity."""

    id: str
    user_id: str
    phone: str | None = None
    date_of_birth: date | None = None
    full_name: str | None = None


class RecurringAvailability(BaseModel):
    """One weekly-recurring open window for a provider."""

    provider_id: str
    day_of_week: str
    start_time: str
    end_time: str
    is_active: bool = True

    @field_validator("day_of_week")
    @classmethod
    def _weekday(cls, value: str) -> str:
        return normalize_weekday(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _clock(cls, value: Any) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _ordered(self) -> "RecurringAvailability":
        if to_minutes(self.start_time) > to_minutes(self.end_time):
            raise ValueError(
                f"start_time {self.start_time} must precede end_time {self.end_time}"
            )
        return self


class Appointment(BaseModel):
    """A reservation of one slot."""

    id: str
    provider_id: str
    patient_id: str
    appointment_date: date
    appointment_time: str
    status: AppointmentStatus = AppointmentStatus.REQUESTED
    reason: str | None = None
    booking_method: BookingChannel = BookingChannel.VOICE
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("appointment_time", mode="before")
    @classmethod
    def _clock(cls, value: Any) -> str:
        return normalize_time(value)


class BookedAppointment(Appointment):
    """Appointment joined with the provider it was booked with."""

    provider_name: str
    provider_specialty: str
    patient_name: str | None = None

    def to_confirmation(self) -> dict[str, Any]:
        """Shape returned by the booking endpoint."""
        return {
            "bookingId": self.id,
            "doctor": self.provider_name,
            "speciality": self.provider_specialty,
            "date": self.appointment_date.isoformat(),
            "time": self.appointment_time,
            "status": self.status.value,
            "bookingMethod": self.booking_method.value,
            "reason": self.reason,
        }


class Notification(BaseModel):
    """Side-effect record informing a provider of a new request."""

    user_id: str
    type: str = "new_appointment"
    title: str
    message: str
    related_id: str | None = None


# =============================================================================
# Engine results
# =============================================================================


class SlotStatus(BaseModel):
    """One generated slot and whether it can still be booked."""

    time: str
    available: bool = True


class ScheduleWindow(BaseModel):
    """Opening hours for one day."""

    start: str
    end: str


class AvailabilityResult(BaseModel):
    """Outcome of an availability query for one provider and date."""

    provider_id: str
    date: date
    day: str
    available: bool
    reason: AvailabilityReason | None = None
    requested_time: str | None = None
    schedule: ScheduleWindow | None = None
    slots: list[SlotStatus] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)
    message: str | None = None

    @property
    def open_times(self) -> list[str]:
        return [slot.time for slot in self.slots if slot.available]


# =============================================================================
# Extraction output
# =============================================================================

Intent = Literal["book", "reschedule", "cancel", "inquiry"]


class ExtractedRequest(BaseModel):
    """Best-effort structured guess from the extraction service.

    Every field is optional: the payload is untrusted and partially
    populated, so malformed values are coerced to None instead of failing.
    """

    provider: str | None = None
    specialty: str | None = None
    date: str | None = None
    time: str | None = None
    intent: Intent = "book"
    confidence: float = 0.5
    reason: str | None = None

    @field_validator("provider", "specialty", "reason", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str | None:
        if value is None or not isinstance(value, (str, int, float)):
            return None
        text = str(value).strip()
        if not text or text.lower() in ("null", "none", "unknown", "n/a"):
            return None
        return text

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value: Any) -> str | None:
        try:
            return parse_date(value).isoformat()
        except (ValueError, TypeError):
            return None

    @field_validator("time", mode="before")
    @classmethod
    def _time(cls, value: Any) -> str | None:
        try:
            return normalize_time(value)
        except (ValueError, TypeError):
            return None

    @field_validator("intent", mode="before")
    @classmethod
    def _intent(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in (
            "book",
            "reschedule",
            "cancel",
            "inquiry",
        ):
            return value.strip().lower()
        return "book"

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            return 0.5
        try:
            score = float(value)
        except ValueError:
            return 0.5
        return min(max(score, 0.0), 1.0)

    @classmethod
    def from_payload(cls, payload: Any) -> "ExtractedRequest":
        """Coerce an arbitrary JSON value into an ExtractedRequest.

        Accepts both ``doctor``/``provider`` and ``speciality``/``specialty``
        spellings. Non-dict payloads produce an empty request.
        """
        if not isinstance(payload, dict):
            return cls()
        return cls(
            provider=payload.get("provider") or payload.get("doctor"),
            specialty=payload.get("specialty") or payload.get("speciality"),
            date=payload.get("date"),
            time=payload.get("time"),
            intent=payload.get("intent"),
            confidence=payload.get("confidence"),
            reason=payload.get("reason"),
        )

    def to_public(self) -> dict[str, Any]:
        """Shape returned by the interpret endpoint."""
        return {
            "doctor": self.provider,
            "speciality": self.specialty,
            "date": self.date,
            "time": self.time,
            "intent": self.intent,
            "confidence": self.confidence,
        }


# =============================================================================
# Request Models (API bodies)
# =============================================================================


class BookingRequest(BaseModel):
    """Booking request posted by the voice or manual flow."""

    model_config = ConfigDict(populate_by_name=True)

    doctor: str | None = None
    doctor_id: str | None = Field(default=None, alias="doctorId")
    speciality: str | None = None
    date: str | None = None
    time: str | None = None
    patient_id: str | None = Field(default=None, alias="patientId")
    reason: str | None = None
    channel: BookingChannel = BookingChannel.VOICE


class ScheduleEntry(BaseModel):
    """One row of a schedule upsert."""

    day_of_week: str
    start_time: str
    end_time: str
    is_active: bool = True


class ScheduleUpdate(BaseModel):
    """Full weekly schedule posted by a provider."""

    schedule: list[ScheduleEntry]


class StatusUpdate(BaseModel):
    """Provider-side status transition."""

    status: AppointmentStatus
    provider_id: str


class CancelRequest(BaseModel):
    """Patient-side cancellation."""

    patient_id: str


class CreateUser(BaseModel):
    """Register an identity with the relational store."""

    email: str
    full_name: str
    role: Role = Role.PATIENT
    specialty: str | None = None
    user_id: str | None = None


class EnsurePatient(BaseModel):
    """Create a patient profile if the identity has none."""

    user_id: str = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class InterpretRequest(BaseModel):
    """Free text to run through the extraction service."""

    text: str


class ResponseRequest(BaseModel):
    """Context for explaining why a slot cannot be booked."""

    context: dict[str, Any]
