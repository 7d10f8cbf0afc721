"""Task, TimeSlot and ScheduledSegment data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from taskplanner.scheduler.errors import InvalidTaskError


class RepetitionType(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SegmentStatus(StrEnum):
    ON_TIME = "on_time"
    MISSED_DEADLINE = "missed_deadline"


def make_id() -> str:
    """Generate a new row ID."""
    return uuid.uuid4().hex


def parse_instant(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _to_utc_iso(value: datetime) -> str:
    """Stored instants are UTC so that text ordering matches time ordering."""
    return value.astimezone(UTC).isoformat()


@dataclass
class Task:
    """A user-defined task the auto-scheduler places on the calendar.

    Attributes:
        id: Unique identifier (UUID hex).
        user_id: Owner of the task. Scheduling runs are scoped per user.
        title: Human-readable title.
        start_time: Earliest instant the task may run.
        deadline: Instant by which the task should be complete.
        duration_minutes: Required time, in whole minutes.
        repetition_type: One of the ``RepetitionType`` values. Kept as a plain
            string so rows written by other clients load even when the value
            is unknown.
        description: Optional free text.
        repetition_end_date: How far recurrence was last expanded. Written
            back by the scheduler for recurring tasks.
        created_at: ISO 8601 timestamp.
    """

    id: str
    user_id: str
    title: str
    start_time: datetime
    deadline: datetime
    duration_minutes: int
    repetition_type: str = RepetitionType.NONE
    description: str = ""
    repetition_end_date: datetime | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = _now_iso()

    @property
    def is_recurring(self) -> bool:
        return bool(self.repetition_type) and self.repetition_type != RepetitionType.NONE

    def validate(self) -> None:
        """Raise ``InvalidTaskError`` if the task cannot be scheduled."""
        if self.duration_minutes <= 0:
            raise InvalidTaskError(self.id, f"duration must be positive, got {self.duration_minutes}")
        if self.start_time > self.deadline:
            raise InvalidTaskError(self.id, "start_time is after deadline")

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``tasks`` column order."""
        return (
            self.id,
            self.user_id,
            self.title,
            self.description,
            _to_utc_iso(self.start_time),
            _to_utc_iso(self.deadline),
            self.duration_minutes,
            str(self.repetition_type),
            _to_utc_iso(self.repetition_end_date) if self.repetition_end_date else None,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        """Deserialize from a database row tuple."""
        return cls(
            id=row[0],
            user_id=row[1],
            title=row[2],
            description=row[3] or "",
            start_time=parse_instant(row[4]),
            deadline=parse_instant(row[5]),
            duration_minutes=int(row[6]),
            repetition_type=row[7] or RepetitionType.NONE,
            repetition_end_date=parse_instant(row[8]) if row[8] else None,
            created_at=row[9],
        )


@dataclass(frozen=True, order=True)
class TimeSlot:
    """A claimed interval ``[start, end)`` on the calendar."""

    start: datetime
    end: datetime

    @classmethod
    def of(cls, start: datetime, minutes: int) -> TimeSlot:
        return cls(start=start, end=start + timedelta(minutes=minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: TimeSlot) -> bool:
        """True if the two slots share an instant. Touching slots do not."""
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class ScheduledSegment:
    """One committed block of time for a task occurrence.

    ``id`` is excluded from equality: segments are regenerated from scratch
    on every pass and have no identity across passes.
    """

    task_id: str
    user_id: str
    start_time: datetime
    duration_minutes: int
    status: SegmentStatus
    id: str = field(default_factory=make_id, compare=False)

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot.of(self.start_time, self.duration_minutes)

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``scheduled_segments`` column order."""
        return (
            self.id,
            self.user_id,
            self.task_id,
            _to_utc_iso(self.start_time),
            self.duration_minutes,
            str(self.status),
        )

    @classmethod
    def from_row(cls, row: tuple) -> ScheduledSegment:
        return cls(
            id=row[0],
            user_id=row[1],
            task_id=row[2],
            start_time=parse_instant(row[3]),
            duration_minutes=int(row[4]),
            status=SegmentStatus(row[5]),
        )
