"""Tests for medbook.services.transcription."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from medbook.config import MAX_AUDIO_BYTES
from medbook.models.errors import ErrorType, RequestValidationError, UpstreamServiceError
from medbook.services.transcription import transcribe


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "test-key")


class TestTranscribe:
    """Tests for transcribe with httpx mocked."""

    def test_returns_text(self):
        with patch("medbook.services.transcription.httpx.post") as mock:
            mock.return_value = MagicMock(
                status_code=200, json=lambda: {"text": "  Book Dr. Smith tomorrow.  "}
            )
            text = transcribe(b"RIFF....", "clip.wav", "audio/wav")

        assert text == "Book Dr. Smith tomorrow."
        call = mock.call_args
        assert call.args[0].endswith("/audio/transcriptions")
        assert call.kwargs["files"]["file"] == ("clip.wav", b"RIFF....", "audio/wav")
        assert call.kwargs["data"]["model"] == "whisper-large-v3"
        assert call.kwargs["headers"]["Authorization"] == "Bearer test-key"

    def test_http_error(self):
        with patch("medbook.services.transcription.httpx.post") as mock:
            mock.return_value = MagicMock(status_code=500, text="oops")
            with pytest.raises(UpstreamServiceError) as exc_info:
                transcribe(b"audio")

        assert exc_info.value.details["status_code"] == 500

    def test_timeout(self):
        with patch("medbook.services.transcription.httpx.post") as mock:
            mock.side_effect = httpx.ConnectTimeout("Connection timed out")
            with pytest.raises(UpstreamServiceError) as exc_info:
                transcribe(b"audio")

        assert exc_info.value.error_type == ErrorType.TIMEOUT

    def test_empty_transcript(self):
        with patch("medbook.services.transcription.httpx.post") as mock:
            mock.return_value = MagicMock(status_code=200, json=lambda: {"text": ""})
            with pytest.raises(UpstreamServiceError):
                transcribe(b"audio")

    def test_no_audio(self):
        with pytest.raises(RequestValidationError):
            transcribe(b"")

    def test_too_large(self):
        with patch("medbook.services.transcription.httpx.post") as mock:
            with pytest.raises(RequestValidationError):
                transcribe(b"0" * (MAX_AUDIO_BYTES + 1))
        mock.assert_not_called()

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        monkeypatch.delenv("TRANSCRIPTION_API_KEY", raising=False)

        with patch("medbook.services.transcription.httpx.post") as mock:
            with pytest.raises(UpstreamServiceError):
                transcribe(b"audio")
        mock.assert_not_called()
