"""Tests for medbook.scheduling.slots."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from medbook.models.schemas import AvailabilityReason, RecurringAvailability
from medbook.scheduling.slots import SlotSequence, generate_slots

MONDAY = date(2024, 3, 4)


class TestSlotSequence:
    """Tests for SlotSequence."""

    def test_one_hour_window(self):
        """09:00-10:00 yields two 30-minute slots."""
        assert list(SlotSequence("09:00", "10:00")) == ["09:00", "09:30"]

    def test_trailing_remainder_dropped(self):
        """A partial slot at the end of the window is not generated."""
        slots = SlotSequence("09:00", "10:15")
        assert list(slots) == ["09:00", "09:30"]
        assert len(slots) == 2

    def test_empty_window(self):
        """Equal start and end yields nothing."""
        slots = SlotSequence("09:00", "09:00")
        assert list(slots) == []
        assert len(slots) == 0

    def test_restartable(self):
        """Iterating twice gives the same sequence."""
        slots = SlotSequence("13:00", "15:00")
        assert list(slots) == list(slots)
        assert len(list(slots)) == len(slots) == 4

    def test_accepts_seconds(self):
        """Store-formatted times with seconds are accepted."""
        assert list(SlotSequence("09:00:00", "10:00:00")) == ["09:00", "09:30"]

    def test_custom_duration(self):
        assert list(SlotSequence("09:00", "10:00", duration=20)) == [
            "09:00",
            "09:20",
            "09:40",
        ]

    def test_invalid_duration(self):
        with pytest.raises(ValueError):
            SlotSequence("09:00", "10:00", duration=0)

    def test_contains(self):
        """Membership follows the slot grid and window."""
        slots = SlotSequence("09:00", "10:00")
        assert "09:30" in slots
        assert "09:30:00" in slots
        assert "09:15" not in slots
        assert "10:00" not in slots
        assert "not a time" not in slots

    def test_last_slot_fits(self):
        """Last slot start plus duration never passes the end time."""
        slots = list(SlotSequence("08:00", "17:00"))
        assert slots[0] == "08:00"
        assert slots[-1] == "16:30"
        assert len(slots) == 18


class TestGenerateSlots:
    """Tests for generate_slots."""

    def _store(self, row):
        store = MagicMock()
        store.get_availability.return_value = row
        return store

    def test_active_day(self):
        """An active row yields the schedule window and slots."""
        row = RecurringAvailability(
            provider_id="doc_1",
            day_of_week="Monday",
            start_time="09:00",
            end_time="10:00",
        )
        store = self._store(row)

        plan = generate_slots(store, "doc_1", MONDAY)

        store.get_availability.assert_called_once_with("doc_1", "Monday")
        assert plan.is_active
        assert plan.day == "Monday"
        assert plan.schedule.start == "09:00"
        assert list(plan.slots) == ["09:00", "09:30"]

    def test_missing_row_is_day_inactive(self):
        """No row for the weekday is reported, not raised."""
        plan = generate_slots(self._store(None), "doc_1", "2024-03-10")

        assert plan.reason == AvailabilityReason.DAY_INACTIVE
        assert plan.day == "Sunday"
        assert list(plan.slots) == []
        assert plan.schedule is None

    def test_inactive_row_is_day_inactive(self):
        row = RecurringAvailability(
            provider_id="doc_1",
            day_of_week="Monday",
            start_time="09:00",
            end_time="10:00",
            is_active=False,
        )
        plan = generate_slots(self._store(row), "doc_1", MONDAY)
        assert plan.reason == AvailabilityReason.DAY_INACTIVE
