"""Tests for the error taxonomy and BookingFailure."""

from medbook.models.errors import (
    AppointmentNotFound,
    BookingFailure,
    ErrorType,
    ProviderNotFound,
    RequestValidationError,
    SlotConflict,
    UpstreamServiceError,
)


class TestBookingErrors:
    """Tests for exception attributes."""

    def test_provider_not_found_carries_term(self):
        e = ProviderNotFound("Dr. Who")
        assert e.search_term == "Dr. Who"
        assert e.message == "No doctor found for: Dr. Who"
        assert e.details["search_term"] == "Dr. Who"
        assert e.error_type == ErrorType.PROVIDER_NOT_FOUND

    def test_slot_conflict_default_message(self):
        e = SlotConflict()
        assert "already has an appointment" in e.message
        assert not e.retryable

    def test_upstream_timeout(self):
        e = UpstreamServiceError("transcription", "timed out", timed_out=True)
        assert e.error_type == ErrorType.TIMEOUT
        assert e.retryable

    def test_upstream_error(self):
        e = UpstreamServiceError("extraction", "bad gateway")
        assert e.error_type == ErrorType.UPSTREAM_ERROR
        assert e.details == {"service": "extraction"}


class TestBookingFailure:
    """Tests for BookingFailure.from_exception."""

    def test_from_booking_error(self):
        failure = BookingFailure.from_exception(
            SlotConflict(details={"time": "09:00"}), alternatives=["09:30"]
        )

        assert failure.type == ErrorType.SLOT_CONFLICT
        assert failure.retryable is False
        assert failure.alternatives == ["09:30"]
        assert failure.details["time"] == "09:00"
        assert failure.details["exception_type"] == "SlotConflict"

    def test_from_generic_exception(self):
        failure = BookingFailure.from_exception(RuntimeError("socket closed"))

        assert failure.type == ErrorType.UPSTREAM_ERROR
        assert failure.retryable is True
        assert failure.message == "socket closed"

    def test_validation_and_not_found(self):
        assert (
            BookingFailure.from_exception(RequestValidationError("x")).type
            == ErrorType.VALIDATION_ERROR
        )
        assert (
            BookingFailure.from_exception(AppointmentNotFound("x")).type
            == ErrorType.NOT_FOUND
        )
