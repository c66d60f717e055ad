"""MedBook - appointment availability and booking engine.

Computes open slots from recurring weekly schedules, classifies requested
times, commits reservations without double-booking, and turns spoken
requests into bookings.
"""

from medbook.models import BookingFailure, ErrorType
from medbook.pipeline import PipelineOutcome, VoiceBookingPipeline
from medbook.scheduling import (
    ProviderResolver,
    SlotSequence,
    check_availability,
    commit_reservation,
    generate_slots,
)
from medbook.storage import MedbookDB

__all__ = [
    # Engine
    "SlotSequence",
    "generate_slots",
    "check_availability",
    "commit_reservation",
    "ProviderResolver",
    # Pipeline
    "VoiceBookingPipeline",
    "PipelineOutcome",
    # Errors
    "ErrorType",
    "BookingFailure",
    # Storage
    "MedbookDB",
]
