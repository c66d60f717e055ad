"""Speech-to-text through an OpenAI-compatible transcription endpoint."""

import logging
import os

import httpx

from medbook.config import (
    MAX_AUDIO_BYTES,
    TRANSCRIPTION_BASE_URL,
    TRANSCRIPTION_LANGUAGE,
    TRANSCRIPTION_MODEL,
    TRANSCRIPTION_TIMEOUT_SECONDS,
)
from medbook.models.errors import RequestValidationError, UpstreamServiceError
from medbook.utils.remote import bounded_call

logger = logging.getLogger(__name__)

SERVICE = "transcription"


def _api_key() -> str:
    key = os.getenv("TRANSCRIPTION_API_KEY") or os.getenv("GROQ_API_KEY")
    if not key:
        raise UpstreamServiceError(SERVICE, "GROQ_API_KEY not configured")
    return key


def _post_audio(audio: bytes, filename: str, content_type: str) -> str:
    resp = httpx.post(
        f"{TRANSCRIPTION_BASE_URL.rstrip('/')}/audio/transcriptions",
        headers={"Authorization": f"Bearer {_api_key()}"},
        files={"file": (filename, audio, content_type)},
        data={
            "model": TRANSCRIPTION_MODEL,
            "language": TRANSCRIPTION_LANGUAGE,
            "response_format": "json",
        },
        timeout=TRANSCRIPTION_TIMEOUT_SECONDS,
    )
    if resp.status_code >= 400:
        raise UpstreamServiceError(
            SERVICE,
            f"Transcription failed with HTTP {resp.status_code}",
            details={"status_code": resp.status_code, "body": resp.text[:500]},
        )
    return (resp.json().get("text") or "").strip()


def transcribe(
    audio: bytes,
    filename: str = "recording.webm",
    content_type: str = "audio/webm",
) -> str:
    """Transcribe recorded audio to text.

    Args:
        audio: Raw audio bytes
        filename: Upload filename (extension tells the service the format)
        content_type: MIME type of the audio

    Returns:
        The transcript, stripped of surrounding whitespace

    Raises:
        RequestValidationError: Empty or oversized audio
        UpstreamServiceError: Service error, timeout, or empty transcript
    """
    if not audio:
        raise RequestValidationError("No audio file provided")
    if len(audio) > MAX_AUDIO_BYTES:
        raise RequestValidationError(
            f"Audio file too large: {len(audio)} bytes (max {MAX_AUDIO_BYTES})",
            details={"size": len(audio), "max": MAX_AUDIO_BYTES},
        )

    logger.info(f"🎙️ Transcribing {filename} ({len(audio) / 1024:.1f} KB)")
    text = bounded_call(
        _post_audio,
        audio,
        filename,
        content_type,
        service=SERVICE,
        timeout=TRANSCRIPTION_TIMEOUT_SECONDS,
    ).unwrap()

    if not text:
        raise UpstreamServiceError(SERVICE, "Transcription returned no text")

    logger.info(f"🎙️ Transcript: {text[:120]}")
    return text
