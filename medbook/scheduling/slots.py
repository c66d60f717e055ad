"""Slot generation from recurring weekly availability."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterator

from medbook.config import SLOT_DURATION_MINUTES
from medbook.models.schemas import AvailabilityReason, ScheduleWindow
from medbook.utils.timefmt import (
    from_minutes,
    normalize_time,
    parse_date,
    to_minutes,
    weekday_label,
)

logger = logging.getLogger(__name__)


class SlotSequence:
    """Ascending "HH:MM" slot start times between two clock times.

    Lazy and restartable: every iteration starts again from ``start``. The
    last slot ends at or before ``end``; a trailing remainder shorter than
    one slot is dropped.

    Example:
        >>> list(SlotSequence("09:00", "10:00"))
        ['09:00', '09:30']
        >>> len(SlotSequence("09:00", "10:15"))
        2
    """

    def __init__(self, start, end, duration: int = SLOT_DURATION_MINUTES):
        if duration <= 0:
            raise ValueError(f"Slot duration must be positive, got {duration}")
        self.start = normalize_time(start)
        self.end = normalize_time(end)
        self.duration = duration
        self._start_min = to_minutes(self.start)
        self._end_min = to_minutes(self.end)

    def __iter__(self) -> Iterator[str]:
        current = self._start_min
        while current + self.duration <= self._end_min:
            yield from_minutes(current)
            current += self.duration

    def __len__(self) -> int:
        return max(self._end_min - self._start_min, 0) // self.duration

    def __contains__(self, value) -> bool:
        try:
            minutes = to_minutes(value)
        except ValueError:
            return False
        offset = minutes - self._start_min
        return (
            offset >= 0
            and offset % self.duration == 0
            and minutes + self.duration <= self._end_min
        )

    def __repr__(self) -> str:
        return f"SlotSequence({self.start!r}, {self.end!r}, duration={self.duration})"


@dataclass
class SlotPlan:
    """Candidate slots for one provider on one date.

    ``reason`` is ``DAY_INACTIVE`` when the provider has no active row for
    the weekday; ``slots`` is then empty.
    """

    provider_id: str
    date: date
    day: str
    schedule: ScheduleWindow | None = None
    slots: SlotSequence | tuple = field(default_factory=tuple)
    reason: AvailabilityReason | None = None

    @property
    def is_active(self) -> bool:
        return self.reason is None


def generate_slots(store, provider_id: str, on_date: date | str) -> SlotPlan:
    """Build the slot plan for a provider and date.

    Args:
        store: Object exposing ``get_availability(provider_id, day_of_week)``
        provider_id: Provider to look up
        on_date: Calendar date (date or "YYYY-MM-DD")

    Returns:
        SlotPlan; an inactive weekday is reported through ``reason``
    """
    day_date = parse_date(on_date)
    day = weekday_label(day_date)
    row = store.get_availability(provider_id, day)

    if row is None or not row.is_active:
        logger.debug(f"No active schedule for {provider_id} on {day}")
        return SlotPlan(
            provider_id=provider_id,
            date=day_date,
            day=day,
            reason=AvailabilityReason.DAY_INACTIVE,
        )

    return SlotPlan(
        provider_id=provider_id,
        date=day_date,
        day=day,
        schedule=ScheduleWindow(start=row.start_time, end=row.end_time),
        slots=SlotSequence(row.start_time, row.end_time),
    )


__all__ = ["SlotPlan", "SlotSequence", "generate_slots", "normalize_time", "weekday_label"]
