"""Bookable start-time resolution from mentor availability."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 240
MAX_STEP_MINUTES = 30


@dataclass(frozen=True, slots=True)
class TimeWindow:
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return [start, end) of a calendar day in UTC."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def resolve_start_times(
    day: date,
    duration_minutes: int,
    available: Iterable[TimeWindow],
    busy: Iterable[TimeWindow],
    not_before: datetime | None = None,
) -> list[str]:
    """Enumerate free HH:MM start times (UTC) of the given day.

    Each available window is walked from its start in steps of
    ``min(duration, 30)`` minutes; a candidate ``[t, t + duration)`` must end
    inside its window and must not overlap any busy window (blocked time or an
    existing booking).
    """
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=min(duration_minutes, MAX_STEP_MINUTES))
    day_start, day_end = day_bounds(day)
    busy_windows = list(busy)

    accepted: set[datetime] = set()
    for window in available:
        candidate = window.start
        while candidate + duration <= window.end:
            candidate_end = candidate + duration
            if (
                day_start <= candidate < day_end
                and (not_before is None or candidate >= not_before)
                and not any(other.overlaps(candidate, candidate_end) for other in busy_windows)
            ):
                accepted.add(candidate)
            candidate += step

    return [moment.strftime("%H:%M") for moment in sorted(accepted)]
