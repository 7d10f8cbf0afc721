"""Exceptions raised by the auto-scheduler."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error the scheduler raises."""


class RepositoryError(SchedulerError):
    """A task or segment repository call failed.

    Not retried: after a failed delete/insert a retry could duplicate or lose
    segments.
    """

    def __init__(self, operation: str, message: str = "") -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}" if message else f"{operation} failed")


class InvalidTaskError(SchedulerError):
    """A task breaks ``start_time <= deadline`` or has a non-positive duration."""

    def __init__(self, task_id: str, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Invalid task {task_id}: {reason}")


class RecurrenceOverrunError(SchedulerError):
    """Expanding a recurring task produced more occurrences than allowed."""

    def __init__(self, task_id: str, limit: int) -> None:
        self.task_id = task_id
        self.limit = limit
        super().__init__(f"Task {task_id} expanded past {limit} occurrences")
