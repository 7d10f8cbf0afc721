"""Slot allocation — greedy first-fit inside one day's working window."""

from __future__ import annotations

import bisect
import logging
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING

from taskplanner.scheduler.models import TimeSlot

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import tzinfo

logger = logging.getLogger(__name__)

_MINUTE = timedelta(minutes=1)


class BusySet:
    """Every slot committed so far in one scheduling pass, ordered by start.

    Shared across all tasks of a pass and only ever grows. It is passed
    explicitly through the allocation loop rather than held globally.
    """

    def __init__(self, slots: list[TimeSlot] | None = None) -> None:
        self._slots: list[TimeSlot] = sorted(slots or [])

    def add(self, slot: TimeSlot) -> None:
        bisect.insort(self._slots, slot)

    def __iter__(self) -> Iterator[TimeSlot]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def conflicts(self, slot: TimeSlot) -> bool:
        """True if *slot* overlaps any committed slot."""
        return any(existing.overlaps(slot) for existing in self._slots)


def working_window(
    day: datetime,
    tz: tzinfo,
    start_hour: int = 9,
    end_hour: int = 17,
) -> tuple[datetime, datetime]:
    """Return the working hours of *day*'s local date in *tz*.

    ``end_hour`` may be 24, meaning midnight at the end of the day.
    """
    local_date = day.astimezone(tz).date()
    day_start = datetime.combine(local_date, time(start_hour), tzinfo=tz)
    day_end = datetime.combine(local_date, time(0), tzinfo=tz) + timedelta(hours=end_hour)
    return day_start, day_end


def _carve(start: datetime, limit: datetime, remaining: int) -> TimeSlot | None:
    """Take up to *remaining* whole minutes from ``[start, limit)``."""
    available = int((limit - start) // _MINUTE)
    minutes = min(remaining, available)
    if minutes <= 0:
        return None
    return TimeSlot.of(start, minutes)


def allocate(
    window: tuple[datetime, datetime],
    duration_minutes: int,
    busy: BusySet,
    not_before: datetime,
) -> list[TimeSlot]:
    """Find free time for *duration_minutes* inside *window*.

    Walks the committed slots in start order and fills each gap from the
    cursor onward until the duration is covered or the window ends. Returns
    the carved slots, which may total less than the requested duration (the
    rest is dropped for this day) or be empty. *busy* is not modified.
    """
    day_start, day_end = window
    cursor = max(day_start, not_before)
    remaining = duration_minutes
    carved: list[TimeSlot] = []

    for obstruction in busy:
        if cursor >= day_end or remaining <= 0:
            break
        if obstruction.end <= cursor:
            continue
        if obstruction.start >= day_end:
            break
        if obstruction.start > cursor:
            slot = _carve(cursor, obstruction.start, remaining)
            if slot is not None:
                carved.append(slot)
                remaining -= slot.duration_minutes
        cursor = max(cursor, obstruction.end)

    if cursor < day_end and remaining > 0:
        slot = _carve(cursor, day_end, remaining)
        if slot is not None:
            carved.append(slot)
            remaining -= slot.duration_minutes

    if remaining > 0:
        logger.debug(
            "Window %s–%s short by %d minute(s)",
            day_start.isoformat(),
            day_end.isoformat(),
            remaining,
        )
    return carved
