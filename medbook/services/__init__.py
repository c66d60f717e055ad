"""Remote services: speech-to-text, extraction, and spoken responses."""

from medbook.services.extraction import extract_request
from medbook.services.responder import explain_unavailability, template_response
from medbook.services.transcription import transcribe

__all__ = [
    "explain_unavailability",
    "extract_request",
    "template_response",
    "transcribe",
]
