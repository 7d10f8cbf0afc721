"""SchedulingOrchestrator — rebuilds a user's whole schedule in one pass."""

from __future__ import annotations

import asyncio
import logging
import zoneinfo
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from taskplanner.config import settings
from taskplanner.scheduler.allocator import BusySet, allocate, working_window
from taskplanner.scheduler.classifier import classifier_for
from taskplanner.scheduler.errors import InvalidTaskError, RepositoryError, SchedulerError
from taskplanner.scheduler.models import ScheduledSegment
from taskplanner.scheduler.recurrence import Occurrences, recurrence_cutoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from taskplanner.scheduler.models import Task
    from taskplanner.scheduler.store import SegmentRepository, TaskRepository

logger = logging.getLogger(__name__)


class SchedulerState(StrEnum):
    IDLE = "idle"
    CLEARING = "clearing"
    FETCHING = "fetching"
    ALLOCATING = "allocating"
    PERSISTING = "persisting"
    FAILED = "failed"


@dataclass
class ScheduleResult:
    """Outcome of one successful reschedule."""

    user_id: str
    segments: list[ScheduledSegment]
    cutoff: datetime
    started_at: datetime
    invalid_task_ids: list[str] = field(default_factory=list)
    slots_per_task: dict[str, int] = field(default_factory=dict)


class SchedulingOrchestrator:
    """Turns a user's tasks into a fresh, non-overlapping schedule.

    Tasks are taken earliest deadline first; each occurrence gets first-fit
    time inside that day's working window, against a busy-set shared by the
    whole pass. The old segments are replaced by the new ones inside a
    single segment-store transaction, so a failure leaves the previous
    schedule in place.

    Runs for the same user are serialised; runs for different users only
    wait on each other for the segment store's write transaction.

    Args:
        tasks: Task repository (read tasks, write back repetition end dates).
        segments: Segment repository (replace the schedule).
        clock: Returns the current instant. Injected so runs are repeatable.
        timezone: IANA timezone of the working window (default from settings).
        max_occurrences: Per-task expansion bound (default from settings).
        classification_rule: ``"now"`` or ``"slot_end"`` (default from settings).
        horizon: How far ahead recurring tasks are expanded (default from
            settings, two weeks).
    """

    def __init__(
        self,
        tasks: TaskRepository,
        segments: SegmentRepository,
        clock: Callable[[], datetime] | None = None,
        timezone: str | None = None,
        max_occurrences: int | None = None,
        classification_rule: str | None = None,
        horizon: timedelta | None = None,
    ) -> None:
        self._tasks = tasks
        self._segments = segments
        self._tz = zoneinfo.ZoneInfo(timezone or settings.scheduler_timezone)
        self._clock = clock or (lambda: datetime.now(self._tz))
        if max_occurrences is None:
            max_occurrences = settings.max_occurrences_per_task
        self._max_occurrences = max_occurrences
        if classification_rule is None:
            classification_rule = settings.classification_rule
        self._classify = classifier_for(classification_rule)
        self._work_hours = settings.get_work_hours()
        if horizon is None:
            horizon = timedelta(weeks=settings.recurrence_horizon_weeks)
        self._horizon = horizon
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._state: dict[str, SchedulerState] = {}

    def state(self, user_id: str) -> SchedulerState:
        return self._state.get(user_id, SchedulerState.IDLE)

    def _enter(self, user_id: str, state: SchedulerState) -> None:
        self._state[user_id] = state
        logger.debug("Scheduler[%s] -> %s", user_id, state)

    async def _call(self, operation: str, awaitable: Awaitable):
        """Await a repository call, wrapping its failure in ``RepositoryError``."""
        try:
            return await awaitable
        except SchedulerError:
            raise
        except Exception as exc:
            raise RepositoryError(operation, str(exc)) from exc

    async def reschedule(self, user_id: str) -> ScheduleResult:
        """Discard the user's schedule and build a new one from their tasks."""
        async with self._locks[user_id]:
            try:
                result = await self._run(user_id)
            except Exception:
                self._enter(user_id, SchedulerState.FAILED)
                logger.exception("Reschedule failed for user %s", user_id)
                raise
            self._enter(user_id, SchedulerState.IDLE)
            return result

    async def _run(self, user_id: str) -> ScheduleResult:
        now = self._clock()
        cutoff = recurrence_cutoff(now, self._horizon)
        result = ScheduleResult(user_id=user_id, segments=[], cutoff=cutoff, started_at=now)

        self._enter(user_id, SchedulerState.FETCHING)
        tasks = await self._call("list_tasks", self._tasks.list_tasks(user_id))
        logger.info("Scheduling %d task(s) for user %s", len(tasks), user_id)

        self._enter(user_id, SchedulerState.ALLOCATING)
        busy = BusySet()
        for task in tasks:
            try:
                task.validate()
            except InvalidTaskError as exc:
                logger.warning("Skipping task: %s", exc)
                result.invalid_task_ids.append(task.id)
                continue

            if task.is_recurring:
                await self._call(
                    "update_repetition_end_date",
                    self._tasks.update_repetition_end_date(task.id, cutoff),
                )
            placed = self._place_task(task, user_id, cutoff, now, busy)
            result.segments.extend(placed)
            result.slots_per_task[task.id] = len(placed)

        try:
            async with self._segments.transaction() as db:
                self._enter(user_id, SchedulerState.CLEARING)
                await self._call(
                    "delete_all_segments", self._segments.delete_all_segments(user_id, db=db)
                )
                self._enter(user_id, SchedulerState.PERSISTING)
                await self._call(
                    "insert_segments", self._segments.insert_segments(result.segments, db=db)
                )
        except SchedulerError:
            raise
        except Exception as exc:
            raise RepositoryError("segment transaction", str(exc)) from exc

        logger.info(
            "Scheduled %d segment(s) for user %s (%d invalid task(s) skipped)",
            len(result.segments),
            user_id,
            len(result.invalid_task_ids),
        )
        return result

    def _place_task(
        self,
        task: Task,
        user_id: str,
        cutoff: datetime,
        now: datetime,
        busy: BusySet,
    ) -> list[ScheduledSegment]:
        """Allocate every occurrence of *task*, committing slots to *busy*."""
        start_hour, end_hour = self._work_hours
        placed: list[ScheduledSegment] = []
        for occurrence in Occurrences(task, cutoff, self._max_occurrences, tz=self._tz):
            window = working_window(occurrence, self._tz, start_hour, end_hour)
            for slot in allocate(window, task.duration_minutes, busy, not_before=occurrence):
                busy.add(slot)
                placed.append(
                    ScheduledSegment(
                        task_id=task.id,
                        user_id=user_id,
                        start_time=slot.start,
                        duration_minutes=slot.duration_minutes,
                        status=self._classify(task, slot, now),
                    )
                )
        if not placed:
            logger.info("No free time found for task %s (%s)", task.title, task.id)
        return placed


_shared: SchedulingOrchestrator | None = None


def get_orchestrator() -> SchedulingOrchestrator:
    """Return the process-wide orchestrator backed by the shared stores.

    One instance per process keeps the per-user run lock effective for every
    caller.
    """
    global _shared  # noqa: PLW0603
    if _shared is None:
        from taskplanner.scheduler.store import SegmentStore, TaskStore

        _shared = SchedulingOrchestrator(TaskStore.get(), SegmentStore.get())
    return _shared


async def reschedule_all_tasks(user_id: str) -> ScheduleResult:
    """Reschedule *user_id* against the shared stores and settings."""
    return await get_orchestrator().reschedule(user_id)
