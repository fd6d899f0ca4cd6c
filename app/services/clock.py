"""Wall-clock adapter pinned to the service timezone."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Clock:
    """Resolves "now" into the local time-of-day and weekday used by the matcher.

    ``now_fn`` must return a timezone-aware datetime; tests pass a frozen one.
    """

    def __init__(self, tz_name: str = "America/Sao_Paulo", now_fn: Callable[[], datetime] = _utcnow):
        self.tz = ZoneInfo(tz_name)
        self._now_fn = now_fn

    def now(self) -> datetime:
        return self._now_fn().astimezone(timezone.utc)

    def local_now(self) -> datetime:
        return self._now_fn().astimezone(self.tz)

    def now_time_of_day(self) -> str:
        return self.now_day_and_time()[1]

    def now_day_of_week(self) -> int:
        return self.now_day_and_time()[0]

    def now_day_and_time(self) -> tuple[int, str]:
        """Weekday (0 = Sunday) and ``HH:MM`` taken from a single clock read."""
        local = self.local_now()
        return local.isoweekday() % 7, local.strftime("%H:%M")

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC start (inclusive) and end (exclusive) of a local calendar day."""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = start + timedelta(days=1)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
