"""Committing reservations and changing their status.

The store's partial unique index is the final word on conflicts; the
pre-check here only produces a friendlier error earlier.
"""

import logging
from datetime import date

from medbook.models.errors import (
    AppointmentNotFound,
    NotificationDeliveryFailure,
    ProviderNotFound,
    RequestValidationError,
    SlotConflict,
)
from medbook.models.schemas import (
    Appointment,
    AppointmentStatus,
    BookedAppointment,
    BookingChannel,
    Notification,
)
from medbook.utils.timefmt import normalize_time, parse_date

logger = logging.getLogger(__name__)


def _require_slot(provider_id, patient_id, on_date, at_time) -> tuple[date, str]:
    missing = [
        name
        for name, value in (
            ("provider_id", provider_id),
            ("patient_id", patient_id),
            ("date", on_date),
            ("time", at_time),
        )
        if not value
    ]
    if missing:
        raise RequestValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )
    try:
        return parse_date(on_date), normalize_time(at_time)
    except ValueError as e:
        raise RequestValidationError(str(e)) from e


def commit_reservation(
    store,
    provider_id: str,
    patient_id: str,
    on_date: date | str,
    at_time: str,
    reason: str | None = None,
    channel: BookingChannel | str = BookingChannel.VOICE,
) -> BookedAppointment:
    """Reserve one slot for a patient.

    Args:
        store: MedbookDB (or compatible) instance
        provider_id: Provider being booked
        patient_id: Patient the slot is reserved for
        on_date: Calendar date
        at_time: Slot start time
        reason: Optional reason for the visit
        channel: Booking origin (voice, text, manual)

    Returns:
        The new appointment joined with provider name and specialty

    Raises:
        RequestValidationError: Missing or malformed fields
        ProviderNotFound: Unknown provider id
        SlotConflict: The slot already holds an active appointment
    """
    day, clock = _require_slot(provider_id, patient_id, on_date, at_time)
    try:
        channel = BookingChannel(channel)
    except ValueError as e:
        raise RequestValidationError(f"Invalid booking channel: {channel}") from e

    provider = store.get_provider(provider_id)
    if provider is None:
        raise ProviderNotFound(provider_id)

    if store.find_active_appointment(provider_id, day, clock) is not None:
        raise SlotConflict(
            details={"provider_id": provider_id, "date": day.isoformat(), "time": clock}
        )

    appointment = store.insert_appointment(
        provider_id,
        patient_id,
        day,
        clock,
        reason=reason,
        status=AppointmentStatus.REQUESTED,
        channel=channel,
    )
    booked = store.get_booked_appointment(appointment.id)

    try:
        _notify_provider(store, provider.user_id, booked)
    except NotificationDeliveryFailure as e:
        logger.warning(f"⚠️ {e.message} (appointment {appointment.id})")

    logger.info(
        f"📅 Booked {booked.provider_name} on {day.isoformat()} at {clock} "
        f"for patient {patient_id} via {channel.value} ({appointment.id})"
    )
    return booked


def _notify_provider(store, user_id: str, booked: BookedAppointment) -> None:
    patient = booked.patient_name or "a patient"
    notification = Notification(
        user_id=user_id,
        type="new_appointment",
        title="New Appointment Request",
        message=(
            f"New appointment request from {patient} for "
            f"{booked.appointment_date.isoformat()} at {booked.appointment_time}"
        ),
        related_id=booked.id,
    )
    try:
        store.insert_notification(notification)
    except Exception as e:
        raise NotificationDeliveryFailure(
            f"Failed to notify provider: {e}", details={"user_id": user_id}
        ) from e


def update_appointment_status(
    store,
    appointment_id: str,
    new_status: AppointmentStatus | str,
    by_provider_id: str,
) -> Appointment:
    """Provider-side status transition.

    Raises:
        RequestValidationError: Unknown status value, or appointment already final
        AppointmentNotFound: Appointment missing or owned by another provider
        SlotConflict: Reactivating a slot that was re-booked meanwhile
    """
    try:
        status = AppointmentStatus(new_status)
    except ValueError as e:
        valid = ", ".join(s.value for s in AppointmentStatus)
        raise RequestValidationError(
            f"Invalid status: {new_status}. Must be one of: {valid}"
        ) from e

    current = store.get_appointment(appointment_id)
    if current is None or current.provider_id != by_provider_id:
        raise AppointmentNotFound(
            f"Appointment not found: {appointment_id}",
            details={"appointment_id": appointment_id},
        )
    if current.status.is_terminal and current.status != status:
        raise RequestValidationError(
            f"Appointment is already {current.status.value}",
            details={"appointment_id": appointment_id, "status": current.status.value},
        )

    updated = store.update_appointment_status(
        appointment_id, status, by_provider_id=by_provider_id
    )
    logger.info(f"🔄 Appointment {appointment_id}: {current.status.value} -> {status.value}")
    return updated


def cancel_appointment(store, appointment_id: str, by_patient_id: str) -> Appointment:
    """Patient-side cancellation of an active appointment.

    Raises:
        AppointmentNotFound: Appointment missing or owned by another patient
        RequestValidationError: Appointment is no longer active
    """
    current = store.get_appointment(appointment_id)
    if current is None or current.patient_id != by_patient_id:
        raise AppointmentNotFound(
            f"Appointment not found: {appointment_id}",
            details={"appointment_id": appointment_id},
        )
    if current.status not in AppointmentStatus.active():
        raise RequestValidationError(
            f"Appointment is already {current.status.value}",
            details={"appointment_id": appointment_id, "status": current.status.value},
        )

    updated = store.update_appointment_status(
        appointment_id, AppointmentStatus.CANCELLED, by_patient_id=by_patient_id
    )
    logger.info(f"🚫 Appointment {appointment_id} cancelled by patient")
    return updated


__all__ = ["cancel_appointment", "commit_reservation", "update_appointment_status"]
