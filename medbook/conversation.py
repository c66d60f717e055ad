"""Conversation state machine for multi-turn voice booking.

State is an immutable value. Every transition takes a state and an input
and returns ``(new_state, prompt)``; nothing here touches the store or
the network, so the machine can be driven and tested turn by turn.

Stages:
    collecting -> confirming -> booked
         ^            |
         +------------+   (no / unavailable / conflict)
    any stage -> closed   (cancel intent)
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from medbook.models.errors import BookingFailure, ErrorType
from medbook.models.schemas import (
    AvailabilityReason,
    AvailabilityResult,
    BookedAppointment,
    ExtractedRequest,
)
from medbook.services.responder import context_from_result, template_response

_YES = re.compile(
    r"^\s*(yes|yeah|yep|yup|sure|correct|confirm(ed)?|ok(ay)?|please do|go ahead|that'?s right)\b",
    re.IGNORECASE,
)
_NO = re.compile(r"^\s*(no|nope|nah|not really|wrong|change)\b", re.IGNORECASE)

FIELD_PROMPTS = {
    "provider": "Which doctor or specialty would you like to see?",
    "date": "What date would you like the appointment?",
    "time": "What time works best for you?",
}


class Stage(str, Enum):
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    BOOKED = "booked"
    CLOSED = "closed"


class CollectedFields(BaseModel):
    """Booking fields gathered so far."""

    model_config = ConfigDict(frozen=True)

    provider: str | None = None
    specialty: str | None = None
    date: str | None = None
    time: str | None = None
    reason: str | None = None

    @property
    def missing(self) -> list[str]:
        """Fields still needed, in the order they are asked for."""
        missing = []
        if not self.provider and not self.specialty:
            missing.append("provider")
        if not self.date:
            missing.append("date")
        if not self.time:
            missing.append("time")
        return missing

    def merge(self, extracted: ExtractedRequest) -> "CollectedFields":
        """New non-empty values replace old ones."""
        updates = {
            key: value
            for key, value in (
                ("provider", extracted.provider),
                ("specialty", extracted.specialty),
                ("date", extracted.date),
                ("time", extracted.time),
                ("reason", extracted.reason),
            )
            if value
        }
        return self.model_copy(update=updates)


class Utterance(BaseModel):
    """One user turn: raw text plus what extraction made of it."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    extracted: ExtractedRequest = Field(default_factory=ExtractedRequest)


class ConversationState(BaseModel):
    """Snapshot of a booking conversation."""

    model_config = ConfigDict(frozen=True)

    stage: Stage = Stage.COLLECTING
    collected: CollectedFields = Field(default_factory=CollectedFields)
    alternatives: tuple[str, ...] = ()
    confirmed: bool = False
    booking_id: str | None = None
    turns: int = 0

    @property
    def ready_to_book(self) -> bool:
        """The user confirmed a complete request."""
        return self.stage == Stage.CONFIRMING and self.confirmed


def _ask_next(state: ConversationState) -> tuple[ConversationState, str]:
    missing = state.collected.missing
    if missing:
        prompt = FIELD_PROMPTS[missing[0]]
        if missing[0] == "time" and state.alternatives:
            prompt = f"{prompt} Available times are {', '.join(state.alternatives)}."
        return state.model_copy(update={"stage": Stage.COLLECTING, "confirmed": False}), prompt

    c = state.collected
    who = c.provider or f"a {c.specialty} specialist"
    return (
        state.model_copy(update={"stage": Stage.CONFIRMING, "confirmed": False}),
        f"Book {who} on {c.date} at {c.time}? Please say yes or no.",
    )


def step(state: ConversationState, utterance: Utterance) -> tuple[ConversationState, str]:
    """Advance the conversation by one user turn."""
    state = state.model_copy(update={"turns": state.turns + 1})

    if state.stage == Stage.CLOSED:
        return state, "This conversation has ended. Start a new request to book."
    if state.stage == Stage.BOOKED:
        return state, "Your appointment is already booked."

    if utterance.extracted.intent == "cancel":
        return (
            state.model_copy(update={"stage": Stage.CLOSED, "confirmed": False}),
            "Okay, I've cancelled this request.",
        )

    merged = state.collected.merge(utterance.extracted)
    changed = merged != state.collected

    if state.stage == Stage.CONFIRMING and not changed:
        if _YES.search(utterance.text):
            return (
                state.model_copy(update={"confirmed": True}),
                "Great, checking availability now.",
            )
        if _NO.search(utterance.text):
            return (
                state.model_copy(update={"stage": Stage.COLLECTING, "confirmed": False}),
                "What would you like to change?",
            )
        return state, "Sorry, I didn't catch that. Please say yes or no."

    return _ask_next(state.model_copy(update={"collected": merged}))


def apply_availability(
    state: ConversationState,
    result: AvailabilityResult,
    provider_name: str | None = None,
) -> tuple[ConversationState, str]:
    """Fold an availability check into the conversation.

    An unavailable slot sends the user back to choosing a time (or a date,
    when the provider does not work that day) with the open slots offered.
    """
    if result.available:
        return state, f"{result.requested_time} on {result.date.isoformat()} is available."

    cleared = {"time": None}
    if result.reason == AvailabilityReason.DAY_INACTIVE:
        cleared["date"] = None

    new_state = state.model_copy(
        update={
            "stage": Stage.COLLECTING,
            "confirmed": False,
            "collected": state.collected.model_copy(update=cleared),
            "alternatives": tuple(result.alternatives),
        }
    )
    return new_state, template_response(context_from_result(result, provider_name))


def apply_failure(
    state: ConversationState, failure: BookingFailure
) -> tuple[ConversationState, str]:
    """Fold a failed commit into the conversation."""
    if failure.type == ErrorType.SLOT_CONFLICT:
        new_state = state.model_copy(
            update={
                "stage": Stage.COLLECTING,
                "confirmed": False,
                "collected": state.collected.model_copy(update={"time": None}),
                "alternatives": tuple(failure.alternatives),
            }
        )
        _, ask = _ask_next(new_state)
        return new_state, f"That time was just taken. {ask}"

    if failure.type == ErrorType.PROVIDER_NOT_FOUND:
        new_state = state.model_copy(
            update={
                "stage": Stage.COLLECTING,
                "confirmed": False,
                "collected": state.collected.model_copy(
                    update={"provider": None, "specialty": None}
                ),
            }
        )
        return new_state, f"I couldn't find that doctor. {FIELD_PROMPTS['provider']}"

    new_state = state.model_copy(update={"confirmed": False})
    if failure.retryable:
        return new_state, "Something went wrong on our side. Please say yes to try again."
    return new_state, f"Sorry, I couldn't book that: {failure.message}"


def mark_booked(
    state: ConversationState, booked: BookedAppointment
) -> tuple[ConversationState, str]:
    """Finish the conversation with a committed appointment."""
    new_state = state.model_copy(
        update={
            "stage": Stage.BOOKED,
            "confirmed": False,
            "booking_id": booked.id,
            "alternatives": (),
        }
    )
    return new_state, (
        f"Your appointment with {booked.provider_name} on "
        f"{booked.appointment_date.isoformat()} at {booked.appointment_time} is requested. "
        "The doctor will confirm shortly."
    )


__all__ = [
    "CollectedFields",
    "ConversationState",
    "Stage",
    "Utterance",
    "apply_availability",
    "apply_failure",
    "mark_booked",
    "step",
]
