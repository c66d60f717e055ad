"""Availability and booking engine."""

from medbook.scheduling.conflicts import check_availability, classify_request, mark_slots
from medbook.scheduling.reservations import (
    cancel_appointment,
    commit_reservation,
    update_appointment_status,
)
from medbook.scheduling.resolver import LLMProviderMatcher, ProviderResolver
from medbook.scheduling.slots import SlotPlan, SlotSequence, generate_slots

__all__ = [
    "LLMProviderMatcher",
    "ProviderResolver",
    "SlotPlan",
    "SlotSequence",
    "cancel_appointment",
    "check_availability",
    "classify_request",
    "commit_reservation",
    "generate_slots",
    "mark_slots",
    "update_appointment_status",
]
