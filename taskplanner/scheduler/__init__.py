"""Auto-scheduler — recurrence, slot allocation, classification, persistence."""

from taskplanner.scheduler.allocator import BusySet, allocate, working_window
from taskplanner.scheduler.classifier import (
    ClassificationRule,
    classifier_for,
    classify,
    classify_by_slot_end,
)
from taskplanner.scheduler.errors import (
    InvalidTaskError,
    RecurrenceOverrunError,
    RepositoryError,
    SchedulerError,
)
from taskplanner.scheduler.models import (
    RepetitionType,
    ScheduledSegment,
    SegmentStatus,
    Task,
    TimeSlot,
)
from taskplanner.scheduler.orchestrator import (
    ScheduleResult,
    SchedulerState,
    SchedulingOrchestrator,
    reschedule_all_tasks,
)
from taskplanner.scheduler.recurrence import Occurrences, recurrence_cutoff
from taskplanner.scheduler.store import SegmentStore, TaskStore

__all__ = [
    "BusySet",
    "ClassificationRule",
    "InvalidTaskError",
    "Occurrences",
    "RecurrenceOverrunError",
    "RepetitionType",
    "RepositoryError",
    "ScheduleResult",
    "ScheduledSegment",
    "SchedulerError",
    "SchedulerState",
    "SchedulingOrchestrator",
    "SegmentStatus",
    "SegmentStore",
    "Task",
    "TaskStore",
    "TimeSlot",
    "allocate",
    "classifier_for",
    "classify",
    "classify_by_slot_end",
    "recurrence_cutoff",
    "reschedule_all_tasks",
    "working_window",
]
