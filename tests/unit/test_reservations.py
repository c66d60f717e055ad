"""Tests for medbook.scheduling.reservations."""

import threading
from datetime import date
from unittest.mock import patch

import pytest

from medbook.models.errors import (
    AppointmentNotFound,
    ProviderNotFound,
    RequestValidationError,
    SlotConflict,
)
from medbook.models.schemas import AppointmentStatus, BookingChannel
from medbook.scheduling.reservations import (
    cancel_appointment,
    commit_reservation,
    update_appointment_status,
)

MONDAY = date(2024, 3, 4)


class TestCommitReservation:
    """Tests for commit_reservation."""

    def test_books_requested_slot(self, db, provider, patient):
        booked = commit_reservation(
            db, provider.id, patient.id, MONDAY, "09:00", reason="Checkup"
        )

        assert booked.status == AppointmentStatus.REQUESTED
        assert booked.provider_name == "Dr. Sarah Smith"
        assert booked.provider_specialty == "Cardiology"
        assert booked.appointment_time == "09:00"
        assert booked.booking_method == BookingChannel.VOICE

        confirmation = booked.to_confirmation()
        assert confirmation["bookingId"] == booked.id
        assert confirmation["doctor"] == "Dr. Sarah Smith"
        assert confirmation["speciality"] == "Cardiology"
        assert confirmation["date"] == "2024-03-04"
        assert confirmation["status"] == "requested"

    def test_notifies_provider(self, db, provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        notifications = db.list_notifications(provider.user_id)
        assert len(notifications) == 1
        assert notifications[0].type == "new_appointment"
        assert notifications[0].title == "New Appointment Request"
        assert notifications[0].related_id == booked.id
        assert "Alice Patient" in notifications[0].message

    def test_notification_failure_is_swallowed(self, db, provider, patient):
        """A failed notification insert does not undo the booking."""
        with patch.object(db, "insert_notification", side_effect=RuntimeError("down")):
            booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        assert db.get_appointment(booked.id) is not None

    def test_second_booking_conflicts(self, db, provider, patient, other_patient):
        commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        with pytest.raises(SlotConflict):
            commit_reservation(db, provider.id, other_patient.id, MONDAY, "09:00:00")

    def test_index_catches_race_after_precheck(self, db, provider, patient, other_patient):
        """Insert-time violation becomes SlotConflict when the pre-check misses it."""
        commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        with patch.object(db, "find_active_appointment", return_value=None):
            with pytest.raises(SlotConflict):
                commit_reservation(db, provider.id, other_patient.id, MONDAY, "09:00")

    def test_concurrent_commits(self, db, provider, patient, other_patient):
        """Two simultaneous commits: one succeeds, one conflicts."""
        barrier = threading.Barrier(2)
        results: list = []
        lock = threading.Lock()

        def attempt(patient_id):
            barrier.wait()
            try:
                outcome = commit_reservation(db, provider.id, patient_id, MONDAY, "09:00")
            except SlotConflict as e:
                outcome = e
            with lock:
                results.append(outcome)

        threads = [
            threading.Thread(target=attempt, args=(pid,))
            for pid in (patient.id, other_patient.id)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        successes = [r for r in results if not isinstance(r, SlotConflict)]
        conflicts = [r for r in results if isinstance(r, SlotConflict)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert successes[0].status == AppointmentStatus.REQUESTED
        assert len(db.list_appointments(provider.id, MONDAY)) == 1

    def test_rebook_after_cancel(self, db, provider, patient, other_patient):
        first = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")
        cancel_appointment(db, first.id, by_patient_id=patient.id)

        second = commit_reservation(db, provider.id, other_patient.id, MONDAY, "09:00")

        assert second.id != first.id

    def test_missing_fields(self, db, provider):
        with pytest.raises(RequestValidationError) as exc_info:
            commit_reservation(db, provider.id, "", MONDAY, None)
        assert exc_info.value.details["missing"] == ["patient_id", "time"]

    def test_malformed_time(self, db, provider, patient):
        with pytest.raises(RequestValidationError):
            commit_reservation(db, provider.id, patient.id, MONDAY, "lunchtime")

    def test_unknown_provider(self, db, patient):
        with pytest.raises(ProviderNotFound) as exc_info:
            commit_reservation(db, "doc_missing", patient.id, MONDAY, "09:00")
        assert exc_info.value.search_term == "doc_missing"

    def test_unknown_patient(self, db, provider):
        with pytest.raises(RequestValidationError):
            commit_reservation(db, provider.id, "pat_missing", MONDAY, "09:00")


class TestUpdateAppointmentStatus:
    """Tests for provider-side status transitions."""

    def test_confirm(self, db, provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        updated = update_appointment_status(
            db, booked.id, "confirmed", by_provider_id=provider.id
        )

        assert updated.status == AppointmentStatus.CONFIRMED

    def test_other_provider_cannot_update(self, db, provider, second_provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        with pytest.raises(AppointmentNotFound):
            update_appointment_status(
                db, booked.id, "confirmed", by_provider_id=second_provider.id
            )

    def test_unknown_appointment(self, db, provider):
        with pytest.raises(AppointmentNotFound):
            update_appointment_status(db, "appt_missing", "confirmed", provider.id)

    def test_invalid_status(self, db, provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")
        with pytest.raises(RequestValidationError):
            update_appointment_status(db, booked.id, "pending", provider.id)

    def test_terminal_status_is_final(self, db, provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")
        update_appointment_status(db, booked.id, "completed", provider.id)

        with pytest.raises(RequestValidationError):
            update_appointment_status(db, booked.id, "confirmed", provider.id)


class TestCancelAppointment:
    """Tests for patient-side cancellation."""

    def test_cancel_own(self, db, provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        cancelled = cancel_appointment(db, booked.id, by_patient_id=patient.id)

        assert cancelled.status == AppointmentStatus.CANCELLED

    def test_cannot_cancel_others(self, db, provider, patient, other_patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")

        with pytest.raises(AppointmentNotFound):
            cancel_appointment(db, booked.id, by_patient_id=other_patient.id)

    def test_cannot_cancel_twice(self, db, provider, patient):
        booked = commit_reservation(db, provider.id, patient.id, MONDAY, "09:00")
        cancel_appointment(db, booked.id, by_patient_id=patient.id)

        with pytest.raises(RequestValidationError):
            cancel_appointment(db, booked.id, by_patient_id=patient.id)
