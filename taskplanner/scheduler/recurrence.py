"""Recurrence expansion — one task definition to a bounded run of occurrences."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta

from taskplanner.scheduler.errors import RecurrenceOverrunError
from taskplanner.scheduler.models import RepetitionType

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import tzinfo

    from taskplanner.scheduler.models import Task

logger = logging.getLogger(__name__)

_STEPS: dict[str, relativedelta] = {
    RepetitionType.DAILY: relativedelta(days=1),
    RepetitionType.WEEKLY: relativedelta(weeks=1),
    RepetitionType.MONTHLY: relativedelta(months=1),
    RepetitionType.YEARLY: relativedelta(years=1),
}


def recurrence_cutoff(now: datetime, horizon: timedelta) -> datetime:
    """Return the instant recurring tasks are expanded up to."""
    return now + horizon


class Occurrences:
    """Lazy, restartable sequence of occurrence instants for one task.

    The k-th occurrence is ``start + k * step`` computed from the anchor, not
    from the previous occurrence. With ``relativedelta`` this clamps a
    missing day-of-month to the month's last day without drifting: a task
    anchored on Jan 31 runs Feb 28 (or 29), then Mar 31.

    Arithmetic happens on the start time converted to *tz*, so each
    occurrence keeps the task's local clock time across DST changes.

    Args:
        task: The task to expand.
        cutoff: Last instant (inclusive) a recurring occurrence may fall on.
        max_occurrences: Raise ``RecurrenceOverrunError`` past this count.
        tz: Local timezone for wall-clock stepping (default: task's own).
    """

    def __init__(
        self,
        task: Task,
        cutoff: datetime,
        max_occurrences: int,
        tz: tzinfo | None = None,
    ) -> None:
        self._task = task
        self._cutoff = cutoff
        self._max = max_occurrences
        self._anchor = task.start_time.astimezone(tz) if tz else task.start_time

    def __iter__(self) -> Iterator[datetime]:
        repetition = self._task.repetition_type
        if not repetition or repetition == RepetitionType.NONE:
            yield self._anchor
            return

        step = _STEPS.get(repetition)
        if step is None:
            logger.warning(
                "Unknown repetition type %r on task %s; scheduling once",
                repetition,
                self._task.id,
            )
            yield self._anchor
            return

        k = 0
        while True:
            occurrence = self._anchor + step * k
            if occurrence > self._cutoff:
                return
            if k >= self._max:
                raise RecurrenceOverrunError(self._task.id, self._max)
            yield occurrence
            k += 1
