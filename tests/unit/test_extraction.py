"""Tests for medbook.services.extraction."""

from datetime import date

import pytest

from medbook.models.errors import ErrorType, RequestValidationError, UpstreamServiceError
from medbook.services.extraction import extract_request


class TestExtractRequest:
    """Tests for extract_request with the LLM mocked."""

    def test_parses_fenced_response(self, mock_execute_prompt):
        mock_execute_prompt["extraction"].return_value = """```json
{"doctor": "Dr. Smith", "speciality": null, "date": "2024-03-05",
 "time": "14:00", "intent": "book", "confidence": 0.9}
```"""

        extracted = extract_request(
            "Um, book Dr. Smith tomorrow at 2 PM", today=date(2024, 3, 4)
        )

        assert extracted.provider == "Dr. Smith"
        assert extracted.date == "2024-03-05"
        assert extracted.time == "14:00"
        assert extracted.confidence == 0.9

    def test_passes_date_context(self, mock_execute_prompt):
        mock_execute_prompt["extraction"].return_value = "{}"

        extract_request("see a dentist", today=date(2024, 3, 4))

        call = mock_execute_prompt["extraction"].call_args
        assert call.args[0] == "extract_appointment"
        variables = call.kwargs["variables"]
        assert variables["today"] == "2024-03-04"
        assert variables["tomorrow"] == "2024-03-05"
        assert variables["weekday"] == "Monday"
        assert variables["text"] == "see a dentist"
        assert call.kwargs["temperature"] == 0.3

    def test_prose_response(self, mock_execute_prompt):
        mock_execute_prompt["extraction"].return_value = (
            'Here is what I found: {"speciality": "dermatologist", "intent": "inquiry"}'
        )

        extracted = extract_request("any skin doctors free?")

        assert extracted.specialty == "dermatologist"
        assert extracted.intent == "inquiry"
        assert extracted.confidence == 0.5

    def test_unparseable_response(self, mock_execute_prompt):
        mock_execute_prompt["extraction"].return_value = "Sorry, I can't help with that."

        with pytest.raises(UpstreamServiceError) as exc_info:
            extract_request("book something")
        assert exc_info.value.error_type == ErrorType.UPSTREAM_ERROR

    def test_llm_failure(self, mock_execute_prompt):
        mock_execute_prompt["extraction"].side_effect = ConnectionError("refused")

        with pytest.raises(UpstreamServiceError):
            extract_request("book something")

    def test_empty_text(self, mock_execute_prompt):
        with pytest.raises(RequestValidationError):
            extract_request("   ")
        mock_execute_prompt["extraction"].assert_not_called()

    def test_text_too_long(self, mock_execute_prompt):
        with pytest.raises(RequestValidationError):
            extract_request("x" * 5000)
