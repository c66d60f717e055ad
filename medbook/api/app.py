"""FastAPI application factory for the booking API."""

import logging
from datetime import date
from typing import Any

from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError as FastAPIValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from medbook.config import WEEKDAYS
from medbook.conversation import (
    ConversationState,
    Utterance,
    apply_availability,
    apply_failure,
    mark_booked,
    step,
)
from medbook.models.errors import (
    BookingError,
    BookingFailure,
    ErrorType,
    PatientNotFound,
    ProviderNotFound,
    RequestValidationError,
    SlotConflict,
    UpstreamServiceError,
)
from medbook.models.schemas import (
    AppointmentStatus,
    BookingChannel,
    BookingRequest,
    CancelRequest,
    CreateUser,
    EnsurePatient,
    ExtractedRequest,
    InterpretRequest,
    Patient,
    Provider,
    ResponseRequest,
    ScheduleUpdate,
    StatusUpdate,
)
from medbook.pipeline import VoiceBookingPipeline
from medbook.scheduling.conflicts import check_availability
from medbook.scheduling.reservations import (
    cancel_appointment,
    commit_reservation,
    update_appointment_status,
)
from medbook.scheduling.resolver import LLMProviderMatcher, ProviderResolver
from medbook.services.extraction import extract_request
from medbook.services.responder import explain_unavailability
from medbook.services.transcription import transcribe
from medbook.storage.database import MedbookDB

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.PROVIDER_NOT_FOUND: 404,
    ErrorType.NOT_FOUND: 404,
    ErrorType.DAY_INACTIVE: 409,
    ErrorType.TIME_OUT_OF_BOUNDS: 409,
    ErrorType.FULLY_BOOKED: 409,
    ErrorType.SLOT_CONFLICT: 409,
    ErrorType.UPSTREAM_ERROR: 502,
    ErrorType.TIMEOUT: 504,
    ErrorType.NOTIFICATION_FAILURE: 500,
}

APPOINTMENT_FILTERS = ("today", "upcoming", "requested")


class ConversationRequest(BaseModel):
    """One turn of a voice conversation."""

    state: ConversationState | None = None
    utterance: str
    patient_id: str | None = None


def failure_response(failure: BookingFailure) -> JSONResponse:
    """Serialize a typed failure with its HTTP status."""
    body = {
        "success": False,
        "error": failure.message,
        "reason": failure.type.value,
        "retryable": failure.retryable,
        "details": failure.details,
    }
    if failure.alternatives:
        body["alternatives"] = failure.alternatives
    return JSONResponse(
        status_code=STATUS_CODES.get(failure.type, 500), content=jsonable(body)
    )


def jsonable(value: Any) -> Any:
    """Make details dicts safe for JSONResponse."""
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise RequestValidationError(
            f"Invalid date format: {value}. Use YYYY-MM-DD", details={"date": value}
        ) from e


def _weekly_schedule(rows) -> list[dict]:
    ordered = sorted(rows, key=lambda r: WEEKDAYS.index(r.day_of_week))
    return [
        {
            "day_of_week": r.day_of_week,
            "start_time": r.start_time,
            "end_time": r.end_time,
            "is_active": r.is_active,
        }
        for r in ordered
    ]


def create_app(
    db: MedbookDB | None = None,
    resolver: ProviderResolver | None = None,
) -> FastAPI:
    """Create FastAPI app with optional database and resolver injection.

    Args:
        db: Database instance. If None, opens the default SQLite DB.
        resolver: Provider resolver. If None, uses local matching with the
            language-model matcher as fallback.

    Returns:
        Configured FastAPI application.
    """
    if db is None:
        db = MedbookDB()
        db.init_schema()

    app = FastAPI(title="MedBook API", version="0.1.0")

    app.state.db = db
    app.state.resolver = resolver

    def get_resolver() -> ProviderResolver:
        if app.state.resolver is None:
            app.state.resolver = ProviderResolver(
                app.state.db, matcher=LLMProviderMatcher()
            )
        return app.state.resolver

    def require_provider(provider_id: str) -> Provider:
        provider = app.state.db.get_provider(provider_id)
        if provider is None:
            raise ProviderNotFound(provider_id)
        return provider

    def resolve_patient(patient_id: str) -> Patient:
        patient = app.state.db.get_patient(patient_id)
        if patient is not None:
            return patient
        patient, _ = app.state.db.ensure_patient(patient_id)
        return patient

    # --- Error handling ---

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} -> {exc.error_type.value}: {exc.message}")
        return failure_response(BookingFailure.from_exception(exc))

    @app.exception_handler(FastAPIValidationError)
    async def validation_handler(
        request: Request, exc: FastAPIValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in errors]
        return failure_response(
            BookingFailure(
                type=ErrorType.VALIDATION_ERROR,
                message=f"Invalid request: {', '.join(f for f in fields if f) or 'body'}",
                details={"errors": [err.get("msg") for err in errors]},
            )
        )

    # --- Providers & availability ---

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/providers")
    def list_providers() -> list[dict]:
        """Roster with each provider's weekly schedule."""
        rows = app.state.db.list_availability()
        return [
            {
                **provider.model_dump(),
                "schedule": _weekly_schedule(
                    [r for r in rows if r.provider_id == provider.id]
                ),
            }
            for provider in app.state.db.list_providers()
        ]

    def availability_body(provider: Provider, day: str | None, at: str | None) -> dict:
        if day is None:
            rows = app.state.db.list_availability(provider.id)
            return {"provider": provider.model_dump(), "schedule": _weekly_schedule(rows)}
        try:
            result = check_availability(app.state.db, provider.id, _parse_day(day), at)
        except ValueError as e:
            raise RequestValidationError(str(e)) from e
        return {"provider": provider.model_dump(), **result.model_dump(mode="json")}

    @app.get("/providers/{provider_id}/availability")
    def provider_availability(
        provider_id: str, date: str | None = None, time: str | None = None
    ) -> dict:
        """Slots for a date, or the weekly schedule when no date is given."""
        return availability_body(require_provider(provider_id), date, time)

    @app.get("/availability")
    def availability_by_name(
        doctor_name: str | None = None,
        specialty: str | None = None,
        date: str | None = None,
        time: str | None = None,
    ) -> dict:
        """Same as provider availability, resolving the provider by name."""
        provider = get_resolver().resolve(doctor_name, specialty)
        return availability_body(provider, date, time)

    @app.get("/providers/{provider_id}/schedule")
    def get_schedule(provider_id: str) -> list[dict]:
        """Recurring weekly availability, ordered by weekday."""
        require_provider(provider_id)
        return _weekly_schedule(
            app.state.db.list_availability(provider_id, active_only=False)
        )

    @app.put("/providers/{provider_id}/schedule")
    def put_schedule(provider_id: str, data: ScheduleUpdate) -> dict:
        """Upsert recurring availability rows."""
        require_provider(provider_id)
        rows = app.state.db.upsert_availability(provider_id, data.schedule)
        return {"success": True, "schedule": _weekly_schedule(rows)}

    # --- Appointments ---

    @app.get("/providers/{provider_id}/appointments")
    def provider_appointments(
        provider_id: str, filter_: str | None = Query(default=None, alias="filter")
    ) -> list[dict]:
        """Provider dashboard listing: today, upcoming, or requested."""
        require_provider(provider_id)
        if filter_ is not None and filter_ not in APPOINTMENT_FILTERS:
            raise RequestValidationError(
                f"Invalid filter: {filter_}. Must be one of: {', '.join(APPOINTMENT_FILTERS)}"
            )

        today = date.today()
        kwargs: dict[str, Any] = {}
        if filter_ == "today":
            kwargs["on_date"] = today
        elif filter_ == "upcoming":
            kwargs["from_date"] = today
        elif filter_ == "requested":
            kwargs["status"] = AppointmentStatus.REQUESTED

        appointments = app.state.db.list_provider_appointments(provider_id, **kwargs)
        return [a.model_dump(mode="json") for a in appointments]

    @app.patch("/appointments/{appointment_id}")
    def patch_appointment(appointment_id: str, data: StatusUpdate) -> dict:
        """Provider-side status transition."""
        updated = update_appointment_status(
            app.state.db, appointment_id, data.status, by_provider_id=data.provider_id
        )
        return {"appointment": updated.model_dump(mode="json")}

    @app.post("/appointments/{appointment_id}/cancel")
    def patient_cancel(appointment_id: str, data: CancelRequest) -> dict:
        """Patient-side cancellation."""
        updated = cancel_appointment(
            app.state.db, appointment_id, by_patient_id=data.patient_id
        )
        return {"appointment": updated.model_dump(mode="json")}

    @app.post("/book", status_code=201)
    def book(data: BookingRequest):
        """Commit a booking from extracted fields."""
        missing = [
            name
            for name, value in (
                ("doctor", data.doctor or data.doctor_id or data.speciality),
                ("date", data.date),
                ("time", data.time),
                ("patientId", data.patient_id),
            )
            if not value
        ]
        if missing:
            raise RequestValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

        if data.doctor_id:
            provider = require_provider(data.doctor_id)
        else:
            provider = get_resolver().resolve(data.doctor, data.speciality)
        patient = resolve_patient(data.patient_id)

        try:
            result = check_availability(app.state.db, provider.id, data.date, data.time)
        except ValueError as e:
            raise RequestValidationError(str(e)) from e
        if not result.available:
            return failure_response(
                BookingFailure(
                    type=ErrorType(result.reason.value),
                    message=result.message or "Requested time is not available",
                    details={"doctor": provider.name, "day": result.day},
                    alternatives=result.alternatives,
                )
            )

        try:
            booked = commit_reservation(
                app.state.db,
                provider.id,
                patient.id,
                data.date,
                data.time,
                reason=data.reason,
                channel=data.channel,
            )
        except SlotConflict as e:
            fresh = check_availability(app.state.db, provider.id, data.date)
            return failure_response(BookingFailure.from_exception(e, fresh.open_times))

        return {
            "success": True,
            "message": "Appointment booked successfully! The doctor will confirm shortly.",
            "appointment": booked.to_confirmation(),
        }

    # --- Identities ---

    @app.post("/users", status_code=201)
    def create_user(data: CreateUser) -> dict:
        """Register an identity; doctors and patients get their profile row."""
        user = app.state.db.create_user(
            email=data.email,
            full_name=data.full_name,
            role=data.role,
            specialty=data.specialty,
            user_id=data.user_id,
        )
        body: dict[str, Any] = {"user": user.model_dump(mode="json")}
        provider = app.state.db.get_provider_by_user(user.id)
        patient = app.state.db.get_patient_by_user(user.id)
        if provider is not None:
            body["provider"] = provider.model_dump()
        if patient is not None:
            body["patient"] = patient.model_dump(mode="json")
        return body

    @app.get("/patients/{user_id}")
    def get_patient(user_id: str) -> dict:
        """Patient profile owned by an identity."""
        patient = app.state.db.get_patient_by_user(user_id)
        if patient is None:
            raise PatientNotFound(
                "Patient profile not found", details={"user_id": user_id}
            )
        return {"patient": patient.model_dump(mode="json")}

    @app.post("/patients")
    def ensure_patient(data: EnsurePatient) -> dict:
        """Create the patient profile if the identity has none."""
        patient, created = app.state.db.ensure_patient(data.user_id)
        return {"patient": patient.model_dump(mode="json"), "created": created}

    @app.get("/patients/{patient_id}/appointments")
    def patient_appointments(patient_id: str) -> list[dict]:
        """Patient dashboard listing."""
        if app.state.db.get_patient(patient_id) is None:
            raise PatientNotFound(
                f"Patient not found: {patient_id}", details={"patient_id": patient_id}
            )
        return [
            a.model_dump(mode="json")
            for a in app.state.db.list_patient_appointments(patient_id)
        ]

    # --- Voice ---

    @app.post("/transcribe")
    def transcribe_audio(audio: UploadFile = File(...)) -> dict:
        """Speech-to-text for an uploaded recording."""
        content = audio.file.read()
        text = transcribe(
            content,
            audio.filename or "recording.webm",
            audio.content_type or "audio/webm",
        )
        return {"text": text}

    @app.post("/interpret")
    def interpret(data: InterpretRequest) -> dict:
        """Extract booking fields from free text."""
        return extract_request(data.text).to_public()

    @app.post("/generate-response")
    def generate_response(data: ResponseRequest) -> dict:
        """Spoken explanation of why a slot cannot be booked."""
        return {"text": explain_unavailability(data.context)}

    @app.post("/voice/book")
    def voice_book(
        audio: UploadFile = File(...),
        patient_id: str = Form(...),
    ):
        """Transcribe, extract, resolve, check and commit in one call."""
        pipeline = VoiceBookingPipeline(
            app.state.db,
            transcriber=transcribe,
            extractor=extract_request,
            resolver=get_resolver(),
        )
        outcome = pipeline.from_audio(
            audio.file.read(),
            patient_id,
            filename=audio.filename or "recording.webm",
            content_type=audio.content_type or "audio/webm",
        )
        body = jsonable(outcome.to_response())
        if outcome.failure is not None:
            body["retryable"] = outcome.failure.retryable
            return JSONResponse(
                status_code=STATUS_CODES.get(outcome.failure.type, 500), content=body
            )
        return JSONResponse(status_code=201, content=body)

    @app.post("/conversation")
    def conversation(data: ConversationRequest) -> dict:
        """Advance a multi-turn booking conversation by one utterance."""
        state = data.state or ConversationState()
        try:
            extracted = extract_request(data.utterance)
        except UpstreamServiceError as e:
            logger.warning(f"Extraction unavailable for conversation turn: {e.message}")
            extracted = ExtractedRequest()

        state, prompt = step(state, Utterance(text=data.utterance, extracted=extracted))

        if state.ready_to_book:
            if not data.patient_id:
                raise RequestValidationError("patient_id is required to book")
            state, prompt = _book_from_conversation(state, data.patient_id)

        return {"state": state.model_dump(mode="json"), "prompt": prompt}

    def _book_from_conversation(
        state: ConversationState, patient_id: str
    ) -> tuple[ConversationState, str]:
        fields = state.collected
        try:
            provider = get_resolver().resolve(fields.provider, fields.specialty)
            patient = resolve_patient(patient_id)
            result = check_availability(app.state.db, provider.id, fields.date, fields.time)
            if not result.available:
                return apply_availability(state, result, provider.name)
            booked = commit_reservation(
                app.state.db,
                provider.id,
                patient.id,
                fields.date,
                fields.time,
                reason=fields.reason,
                channel=BookingChannel.VOICE,
            )
        except SlotConflict as e:
            fresh = check_availability(app.state.db, provider.id, fields.date)
            return apply_failure(state, BookingFailure.from_exception(e, fresh.open_times))
        except BookingError as e:
            return apply_failure(state, BookingFailure.from_exception(e))
        return mark_booked(state, booked)

    return app
