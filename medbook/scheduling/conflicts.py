"""Conflict detection against existing appointments."""

import logging
from datetime import date
from typing import Iterable

from medbook.models.schemas import (
    AppointmentStatus,
    AvailabilityReason,
    AvailabilityResult,
    SlotStatus,
)
from medbook.scheduling.slots import generate_slots
from medbook.utils.timefmt import normalize_time

logger = logging.getLogger(__name__)


def mark_slots(slots: Iterable[str], booked_times: Iterable[str]) -> list[SlotStatus]:
    """Flag each slot as taken when an active appointment holds it.

    Times are compared in "HH:MM" form, so "14:00:00" from the store
    matches the generated "14:00".
    """
    taken = {normalize_time(t) for t in booked_times}
    return [SlotStatus(time=slot, available=slot not in taken) for slot in slots]


def classify_request(
    slot_statuses: list[SlotStatus], requested_time: str
) -> AvailabilityReason:
    """Classify a requested time against the marked slots.

    Returns ``TIME_OUT_OF_BOUNDS`` for a time that is not a generated slot
    (outside hours or off the slot grid), ``FULLY_BOOKED`` for a taken slot.
    """
    wanted = normalize_time(requested_time)
    for slot in slot_statuses:
        if slot.time == wanted:
            return (
                AvailabilityReason.AVAILABLE
                if slot.available
                else AvailabilityReason.FULLY_BOOKED
            )
    return AvailabilityReason.TIME_OUT_OF_BOUNDS


def check_availability(
    store,
    provider_id: str,
    on_date: date | str,
    requested_time: str | None = None,
) -> AvailabilityResult:
    """Compute open slots for a date and classify an optional requested time.

    Args:
        store: Object exposing ``get_availability`` and ``list_appointments``
        provider_id: Provider to check
        on_date: Calendar date
        requested_time: Optional clock time to classify

    Returns:
        AvailabilityResult with per-slot flags and alternatives when the
        requested time cannot be booked

    Raises:
        ValueError: If the date or requested time is malformed
    """
    wanted = normalize_time(requested_time) if requested_time else None
    plan = generate_slots(store, provider_id, on_date)

    if not plan.is_active:
        return AvailabilityResult(
            provider_id=provider_id,
            date=plan.date,
            day=plan.day,
            available=False,
            reason=AvailabilityReason.DAY_INACTIVE,
            requested_time=wanted,
            message=f"Doctor is not available on {plan.day}s",
        )

    booked = store.list_appointments(
        provider_id, plan.date, status_in=AppointmentStatus.active()
    )
    statuses = mark_slots(plan.slots, [appt.appointment_time for appt in booked])
    open_times = [s.time for s in statuses if s.available]

    if wanted is not None:
        reason = classify_request(statuses, wanted)
    elif open_times:
        reason = AvailabilityReason.AVAILABLE
    else:
        reason = AvailabilityReason.FULLY_BOOKED

    available = reason == AvailabilityReason.AVAILABLE
    result = AvailabilityResult(
        provider_id=provider_id,
        date=plan.date,
        day=plan.day,
        available=available,
        reason=None if available else reason,
        requested_time=wanted,
        schedule=plan.schedule,
        slots=statuses,
        alternatives=[] if available else open_times,
        message=_describe(reason, plan.day, plan.schedule, wanted),
    )
    logger.debug(
        f"Availability {provider_id} {plan.date} {wanted or '-'}: "
        f"{reason.value} ({len(open_times)}/{len(statuses)} open)"
    )
    return result


def _describe(reason, day, schedule, wanted) -> str:
    if reason == AvailabilityReason.AVAILABLE:
        return f"{wanted} is available" if wanted else "Open slots available"
    if reason == AvailabilityReason.TIME_OUT_OF_BOUNDS:
        return (
            f"Doctor is available on {day}s from {schedule.start} to {schedule.end}"
        )
    if wanted:
        return f"{wanted} is already booked"
    return f"No open slots left on this {day}"


__all__ = ["check_availability", "classify_request", "mark_slots"]
