"""Short spoken explanations for slots that cannot be booked."""

import logging
from typing import Any

from medbook.config import DEFAULT_TEMPERATURE
from medbook.executor import execute_prompt
from medbook.models.errors import UpstreamServiceError
from medbook.models.schemas import AvailabilityReason, AvailabilityResult
from medbook.utils.remote import bounded_call

logger = logging.getLogger(__name__)

SERVICE = "responder"


def context_from_result(
    result: AvailabilityResult, provider_name: str | None = None
) -> dict[str, Any]:
    """Build an explanation context from an availability result."""
    return {
        "doctor": provider_name,
        "date": result.date.isoformat(),
        "day": result.day,
        "time": result.requested_time,
        "reason": result.reason.value if result.reason else None,
        "schedule": result.schedule.model_dump() if result.schedule else None,
        "alternatives": list(result.alternatives),
    }


def _normalize_context(context: dict[str, Any]) -> dict[str, Any]:
    schedule = context.get("schedule")
    if schedule is not None and not isinstance(schedule, dict):
        schedule = None
    alternatives = context.get("alternatives") or context.get("availableSlots") or []
    return {
        "doctor": context.get("doctor") or context.get("doctorName"),
        "date": context.get("date") or context.get("requestedDate"),
        "day": context.get("day"),
        "time": context.get("time") or context.get("requestedTime"),
        "reason": context.get("reason") or "unavailable",
        "schedule": schedule,
        "alternatives": [str(a) for a in alternatives][:5],
    }


def template_response(context: dict[str, Any]) -> str:
    """Deterministic sentence used when the model is unavailable."""
    ctx = _normalize_context(context)
    doctor = ctx["doctor"] or "The doctor"
    reason = ctx["reason"]
    schedule = ctx["schedule"]

    if reason == AvailabilityReason.DAY_INACTIVE.value:
        day = ctx["day"] or "that day"
        first = f"{doctor} doesn't see patients on {day}s."
    elif reason == AvailabilityReason.TIME_OUT_OF_BOUNDS.value and schedule:
        first = (
            f"{doctor} is only available from {schedule.get('start')} "
            f"to {schedule.get('end')} that day."
        )
    elif reason == AvailabilityReason.FULLY_BOOKED.value:
        when = f"at {ctx['time']}" if ctx["time"] else "that day"
        first = f"{doctor} is already booked {when}."
    else:
        first = f"{doctor} isn't available at that time."

    if ctx["alternatives"]:
        return f"{first} Would {', '.join(ctx['alternatives'])} work instead?"
    return f"{first} Could you suggest a different date or time?"


def explain_unavailability(context: dict[str, Any]) -> str:
    """Explain why a requested slot cannot be booked.

    Only the supplied alternatives are offered. Falls back to
    ``template_response`` when the model call fails or times out.
    """
    variables = _normalize_context(context)
    try:
        text = bounded_call(
            execute_prompt,
            "explain_unavailability",
            variables=variables,
            temperature=DEFAULT_TEMPERATURE,
            service=SERVICE,
        ).unwrap()
    except UpstreamServiceError as e:
        logger.warning(f"Falling back to template response: {e.message}")
        return template_response(context)

    text = (text or "").strip()
    return text or template_response(context)
