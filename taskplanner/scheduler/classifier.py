"""Deadline classification for committed segments."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from taskplanner.scheduler.models import SegmentStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from taskplanner.scheduler.models import Task, TimeSlot

    Classifier = Callable[[Task, TimeSlot, datetime], SegmentStatus]


class ClassificationRule(StrEnum):
    NOW = "now"
    SLOT_END = "slot_end"


def classify(deadline: datetime, now: datetime) -> SegmentStatus:
    """Missed iff the deadline is already behind *now* at scheduling time.

    This does not look at where the segment landed: a segment placed after
    a future deadline is still ``on_time``.
    """
    if deadline < now:
        return SegmentStatus.MISSED_DEADLINE
    return SegmentStatus.ON_TIME


def classify_by_slot_end(deadline: datetime, slot: TimeSlot) -> SegmentStatus:
    """Missed iff the slot finishes after the deadline."""
    if slot.end > deadline:
        return SegmentStatus.MISSED_DEADLINE
    return SegmentStatus.ON_TIME


def classifier_for(rule: str) -> Classifier:
    """Return a ``(task, slot, now) -> status`` callable for *rule*."""
    rule = ClassificationRule(rule)
    if rule is ClassificationRule.SLOT_END:
        return lambda task, slot, now: classify_by_slot_end(task.deadline, slot)
    return lambda task, slot, now: classify(task.deadline, now)
