"""Structured extraction of booking requests from free text."""

import logging
from datetime import date, timedelta

from medbook.config import EXTRACTION_TEMPERATURE, MAX_UTTERANCE_LENGTH
from medbook.executor import execute_prompt
from medbook.models.errors import RequestValidationError, UpstreamServiceError
from medbook.models.schemas import ExtractedRequest
from medbook.utils.json_extract import extract_json_object
from medbook.utils.remote import bounded_call
from medbook.utils.timefmt import weekday_label

logger = logging.getLogger(__name__)

SERVICE = "extraction"


def extract_request(text: str, today: date | None = None) -> ExtractedRequest:
    """Ask the language model to pull booking fields out of ``text``.

    Relative dates ("tomorrow", "next Tuesday") are resolved by the model
    against ``today``.

    Args:
        text: Transcript or typed request
        today: Reference date (defaults to the current date)

    Returns:
        ExtractedRequest with untrusted fields coerced

    Raises:
        RequestValidationError: Empty or oversized text
        UpstreamServiceError: Model failure, timeout, or no JSON in the reply
    """
    text = (text or "").strip()
    if not text:
        raise RequestValidationError("No text provided")
    if len(text) > MAX_UTTERANCE_LENGTH:
        raise RequestValidationError(
            f"Text too long: {len(text)} characters (max {MAX_UTTERANCE_LENGTH})"
        )

    today = today or date.today()
    variables = {
        "text": text,
        "today": today.isoformat(),
        "weekday": weekday_label(today),
        "tomorrow": (today + timedelta(days=1)).isoformat(),
    }

    raw = bounded_call(
        execute_prompt,
        "extract_appointment",
        variables=variables,
        temperature=EXTRACTION_TEMPERATURE,
        service=SERVICE,
    ).unwrap()

    payload = extract_json_object(raw)
    if payload is None:
        raise UpstreamServiceError(
            SERVICE,
            "Failed to parse JSON from extraction response",
            details={"response": (raw or "")[:500]},
        )

    extracted = ExtractedRequest.from_payload(payload)
    logger.info(
        f"🧠 Extracted intent={extracted.intent} doctor={extracted.provider} "
        f"specialty={extracted.specialty} date={extracted.date} time={extracted.time} "
        f"(confidence {extracted.confidence:.2f})"
    )
    return extracted
