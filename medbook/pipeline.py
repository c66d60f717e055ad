"""Voice-to-booking pipeline.

Chains transcription, extraction, patient lookup, provider resolution,
availability and commit. Each stage either feeds the next or ends the run
with a typed ``BookingFailure``; nothing raises past ``from_audio`` or
``from_text``.
"""

import logging
from datetime import date
from typing import Any, Callable

from pydantic import BaseModel

from medbook.models.errors import (
    BookingError,
    BookingFailure,
    ErrorType,
    RequestValidationError,
    SlotConflict,
)
from medbook.models.schemas import (
    AvailabilityResult,
    BookedAppointment,
    BookingChannel,
    ExtractedRequest,
    Provider,
)
from medbook.scheduling.conflicts import check_availability
from medbook.scheduling.reservations import commit_reservation
from medbook.scheduling.resolver import LLMProviderMatcher, ProviderResolver
from medbook.services.extraction import extract_request
from medbook.services.transcription import transcribe

logger = logging.getLogger(__name__)


class PipelineOutcome(BaseModel):
    """Everything the pipeline learned, plus the booking or the failure."""

    transcript: str | None = None
    extracted: ExtractedRequest | None = None
    provider: Provider | None = None
    availability: AvailabilityResult | None = None
    booking: BookedAppointment | None = None
    failure: BookingFailure | None = None

    @property
    def success(self) -> bool:
        return self.booking is not None and self.failure is None

    def to_response(self) -> dict[str, Any]:
        """Shape returned by the voice booking endpoint."""
        body: dict[str, Any] = {
            "success": self.success,
            "transcript": self.transcript,
            "extracted": self.extracted.to_public() if self.extracted else None,
        }
        if self.booking is not None:
            body["message"] = (
                "Appointment booked successfully! The doctor will confirm shortly."
            )
            body["appointment"] = self.booking.to_confirmation()
        if self.failure is not None:
            body["error"] = self.failure.message
            body["reason"] = self.failure.type.value
            body["alternatives"] = self.failure.alternatives
        if self.availability is not None:
            body["availability"] = self.availability.model_dump(mode="json")
        return body


def _availability_failure(result: AvailabilityResult) -> BookingFailure:
    return BookingFailure(
        type=ErrorType(result.reason.value),
        message=result.message or "Requested time is not available",
        details={"provider_id": result.provider_id, "date": result.date.isoformat()},
        alternatives=list(result.alternatives),
    )


class VoiceBookingPipeline:
    """Turn a recording or free text into a committed reservation.

    Example:
        pipeline = VoiceBookingPipeline(db)
        outcome = pipeline.from_text("Dr. Smith tomorrow at 2pm", "usr_123")
        if outcome.success:
            print(outcome.booking.to_confirmation())
    """

    def __init__(
        self,
        store,
        transcriber: Callable[..., str] = transcribe,
        extractor: Callable[..., ExtractedRequest] = extract_request,
        resolver: ProviderResolver | None = None,
    ):
        self.store = store
        self.transcriber = transcriber
        self.extractor = extractor
        self.resolver = resolver or ProviderResolver(store, matcher=LLMProviderMatcher())

    def from_audio(
        self,
        audio: bytes,
        patient_user_id: str,
        filename: str = "recording.webm",
        content_type: str = "audio/webm",
        today: date | None = None,
    ) -> PipelineOutcome:
        """Transcribe a recording and book from the transcript."""
        try:
            transcript = self.transcriber(audio, filename, content_type)
        except Exception as e:
            logger.error(f"Voice booking failed at transcription: {e}")
            return PipelineOutcome(failure=BookingFailure.from_exception(e))

        return self.from_text(
            transcript, patient_user_id, today=today, channel=BookingChannel.VOICE
        )

    def from_text(
        self,
        text: str,
        patient_user_id: str,
        today: date | None = None,
        channel: BookingChannel = BookingChannel.TEXT,
    ) -> PipelineOutcome:
        """Extract, resolve, check and commit a booking from text."""
        outcome = PipelineOutcome(transcript=text)
        try:
            return self._run(outcome, patient_user_id, today, channel)
        except BookingError as e:
            logger.warning(f"Voice booking stopped: {e.error_type.value}: {e.message}")
            failure = BookingFailure.from_exception(e)
        except Exception as e:
            logger.error(f"Voice booking failed: {e}")
            failure = BookingFailure.from_exception(e)
        return outcome.model_copy(update={"failure": failure})

    def _run(
        self,
        outcome: PipelineOutcome,
        patient_user_id: str,
        today: date | None,
        channel: BookingChannel,
    ) -> PipelineOutcome:
        extracted = self.extractor(outcome.transcript, today)
        outcome = outcome.model_copy(update={"extracted": extracted})

        if extracted.intent in ("cancel", "reschedule"):
            raise RequestValidationError(
                f"'{extracted.intent}' requests are handled from the dashboard",
                details={"intent": extracted.intent},
            )

        patient, _ = self.store.ensure_patient(patient_user_id)
        provider = self.resolver.resolve(extracted.provider, extracted.specialty)
        outcome = outcome.model_copy(update={"provider": provider})

        if not extracted.date:
            raise RequestValidationError(
                "Please say which date you'd like", details={"missing": ["date"]}
            )

        availability = check_availability(
            self.store, provider.id, extracted.date, extracted.time
        )
        outcome = outcome.model_copy(update={"availability": availability})

        if extracted.intent == "inquiry":
            return outcome
        if not extracted.time:
            raise RequestValidationError(
                "Please say what time you'd like", details={"missing": ["time"]}
            )
        if not availability.available:
            return outcome.model_copy(update={"failure": _availability_failure(availability)})

        try:
            booked = commit_reservation(
                self.store,
                provider.id,
                patient.id,
                extracted.date,
                extracted.time,
                reason=extracted.reason,
                channel=channel,
            )
        except SlotConflict as e:
            fresh = check_availability(self.store, provider.id, extracted.date)
            return outcome.model_copy(
                update={
                    "availability": fresh,
                    "failure": BookingFailure.from_exception(e, fresh.open_times),
                }
            )

        return outcome.model_copy(update={"booking": booked})


__all__ = ["PipelineOutcome", "VoiceBookingPipeline"]
