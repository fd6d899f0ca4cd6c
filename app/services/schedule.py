from __future__ import annotations

from typing import Iterable, Protocol


class Scheduled(Protocol):
    days_of_week: Iterable[int]
    times: Iterable[str]


def is_due(medication: Scheduled, current_day: int, current_time: str) -> bool:
    """True when ``current_day`` is a configured weekday and ``current_time``
    (HH:MM) equals one of the configured times. Minute granularity, no window."""
    if current_day not in (medication.days_of_week or []):
        return False
    return any(t[:5] == current_time for t in (medication.times or []))
