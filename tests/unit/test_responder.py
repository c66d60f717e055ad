"""Tests for medbook.services.responder."""

from datetime import date

from medbook.models.schemas import AvailabilityReason, AvailabilityResult, ScheduleWindow
from medbook.services.responder import (
    context_from_result,
    explain_unavailability,
    template_response,
)


def _result(**overrides) -> AvailabilityResult:
    data = dict(
        provider_id="doc_1",
        date=date(2024, 3, 4),
        day="Monday",
        available=False,
        reason=AvailabilityReason.FULLY_BOOKED,
        requested_time="09:30",
        schedule=ScheduleWindow(start="09:00", end="10:00"),
        alternatives=["09:00"],
    )
    data.update(overrides)
    return AvailabilityResult(**data)


class TestTemplateResponse:
    """Tests for the deterministic fallback sentence."""

    def test_fully_booked(self):
        text = template_response(context_from_result(_result(), "Dr. Smith"))
        assert text == "Dr. Smith is already booked at 09:30. Would 09:00 work instead?"

    def test_day_inactive(self):
        result = _result(
            reason=AvailabilityReason.DAY_INACTIVE,
            day="Sunday",
            schedule=None,
            alternatives=[],
        )
        text = template_response(context_from_result(result, "Dr. Smith"))
        assert text.startswith("Dr. Smith doesn't see patients on Sundays.")
        assert "different date" in text

    def test_out_of_bounds(self):
        result = _result(reason=AvailabilityReason.TIME_OUT_OF_BOUNDS, requested_time="11:00")
        text = template_response(context_from_result(result, None))
        assert "only available from 09:00 to 10:00" in text

    def test_camel_case_context(self):
        text = template_response(
            {"doctorName": "Dr. Lee", "reason": "fully_booked", "availableSlots": ["13:00"]}
        )
        assert "Dr. Lee" in text
        assert "13:00" in text


class TestExplainUnavailability:
    """Tests for the LLM-backed explanation."""

    def test_uses_model_text(self, mock_execute_prompt):
        mock_execute_prompt["responder"].return_value = " Dr. Smith is booked then. "

        text = explain_unavailability(context_from_result(_result(), "Dr. Smith"))

        assert text == "Dr. Smith is booked then."
        variables = mock_execute_prompt["responder"].call_args.kwargs["variables"]
        assert variables["alternatives"] == ["09:00"]
        assert variables["reason"] == "fully_booked"

    def test_falls_back_on_failure(self, mock_execute_prompt):
        mock_execute_prompt["responder"].side_effect = RuntimeError("rate limited")
        context = context_from_result(_result(), "Dr. Smith")

        assert explain_unavailability(context) == template_response(context)

    def test_falls_back_on_empty(self, mock_execute_prompt):
        mock_execute_prompt["responder"].return_value = ""
        context = context_from_result(_result(), "Dr. Smith")

        assert explain_unavailability(context) == template_response(context)
