"""Task builders shared by the scheduler tests."""

from __future__ import annotations

import zoneinfo
from datetime import datetime

from taskplanner.scheduler.models import RepetitionType, Task

TZ = zoneinfo.ZoneInfo("America/Chicago")
USER = "user-1"


def at(day: int, hour: int, minute: int = 0, month: int = 6, year: int = 2030) -> datetime:
    """Local (America/Chicago) instant. June 2030 has no DST transition."""
    return datetime(year, month, day, hour, minute, tzinfo=TZ)


def make_task(
    task_id: str = "task1",
    *,
    start: datetime | None = None,
    deadline: datetime | None = None,
    duration: int = 60,
    repetition: str = RepetitionType.NONE,
    user_id: str = USER,
    **kwargs,
) -> Task:
    defaults = {
        "title": f"Task {task_id}",
        "created_at": "2030-01-01T00:00:00+00:00",
    }
    defaults.update(kwargs)
    return Task(
        id=task_id,
        user_id=user_id,
        start_time=start or at(3, 9),
        deadline=deadline or at(3, 17),
        duration_minutes=duration,
        repetition_type=repetition,
        **defaults,
    )
