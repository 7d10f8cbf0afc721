"""TaskStore and SegmentStore — libsql persistence for tasks and the schedule."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol

from taskplanner.db import get_connection
from taskplanner.scheduler.models import ScheduledSegment, Task

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence
    from datetime import tzinfo
    from pathlib import Path

    from taskplanner.db import _AsyncConnection

logger = logging.getLogger(__name__)

_CREATE_TASKS = """
CREATE TABLE IF NOT EXISTS tasks (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    title               TEXT NOT NULL,
    description         TEXT NOT NULL DEFAULT '',
    start_time          TEXT NOT NULL,
    deadline            TEXT NOT NULL,
    duration_minutes    INTEGER NOT NULL,
    repetition_type     TEXT NOT NULL DEFAULT 'none',
    repetition_end_date TEXT,
    created_at          TEXT NOT NULL
)
"""

_CREATE_SEGMENTS = """
CREATE TABLE IF NOT EXISTS scheduled_segments (
    id               TEXT PRIMARY KEY,
    user_id          TEXT NOT NULL,
    task_id          TEXT NOT NULL,
    start_time       TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL,
    status           TEXT NOT NULL
)
"""

_TASK_COLUMNS = (
    "id, user_id, title, description, start_time, deadline, duration_minutes, "
    "repetition_type, repetition_end_date, created_at"
)
_SEGMENT_COLUMNS = "id, user_id, task_id, start_time, duration_minutes, status"


def _utc(value: datetime) -> str:
    return value.astimezone(UTC).isoformat()


class TaskRepository(Protocol):
    """What the orchestrator needs from a task store."""

    async def list_tasks(self, user_id: str) -> list[Task]: ...

    async def update_repetition_end_date(self, task_id: str, end_date: datetime) -> bool: ...


class SegmentRepository(Protocol):
    """What the orchestrator needs from a segment store."""

    def transaction(self) -> contextlib.AbstractAsyncContextManager[Any]: ...

    async def delete_all_segments(self, user_id: str, db: Any = None) -> int: ...

    async def insert_segments(
        self, segments: Sequence[ScheduledSegment], db: Any = None
    ) -> int: ...


class _Store:
    """Shared connection handling for the libsql-backed stores.

    Subclasses are singletons accessed via ``get()``.  Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance = None
    _schema: tuple[str, ...] = ()

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls):  # noqa: ANN206
        """Return the shared instance of this store."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _connect(self) -> _AsyncConnection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            for statement in self._schema:
                await db.execute(statement)
            await db.commit()
            self._initialised = True
        return db


class TaskStore(_Store):
    """Persists tasks. The scheduler reads them; the app owns CRUD."""

    _instance: TaskStore | None = None
    _schema = (_CREATE_TASKS,)

    async def add_task(self, task: Task) -> Task:
        """Insert a new task. Returns the same task object."""
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO tasks ({_TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                task.to_row(),
            )
            await db.commit()
            logger.info("Added task: %s (%s)", task.title, task.id)
            return task
        finally:
            await db.close()

    async def get_task(self, task_id: str) -> Task | None:
        """Fetch a task by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            )
            row = await cursor.fetchone()
            return Task.from_row(row) if row else None
        finally:
            await db.close()

    async def list_tasks(self, user_id: str) -> list[Task]:
        """Return the user's tasks, earliest deadline first.

        Ties on deadline go to the task with the earlier start time.
        """
        return await self._select_ordered(user_id, "deadline, start_time, id")

    async def list_tasks_by_start(self, user_id: str) -> list[Task]:
        """Return the user's tasks ordered by start time (task list view)."""
        return await self._select_ordered(user_id, "start_time, id")

    async def _select_ordered(self, user_id: str, order_by: str) -> list[Task]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE user_id = ? ORDER BY {order_by}",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def update_repetition_end_date(self, task_id: str, end_date: datetime) -> bool:
        """Record how far a recurring task was expanded. True if a row changed."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE tasks SET repetition_end_date = ? WHERE id = ?",
                (_utc(end_date), task_id),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted task: %s", task_id)
            return deleted
        finally:
            await db.close()


class SegmentStore(_Store):
    """Persists the computed schedule.

    ``transaction()`` holds the store's write lock and yields one connection;
    writes given that connection as ``db`` are committed together when the
    block exits cleanly, or rolled back if it raises.  Writes called without
    ``db`` take the lock themselves and commit on their own, so they never
    join somebody else's open transaction.
    """

    _instance: SegmentStore | None = None
    _schema = (_CREATE_SEGMENTS,)

    def __init__(self, db_path: Path | None = None) -> None:
        super().__init__(db_path)
        self._write_lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[_AsyncConnection]:
        async with self._write_lock:
            db = await self._connect()
            try:
                yield db
            except BaseException:
                await db.rollback()
                logger.warning("Rolled back segment transaction")
                raise
            else:
                await db.commit()
            finally:
                await db.close()

    @contextlib.asynccontextmanager
    async def _write(self, db: _AsyncConnection | None) -> AsyncIterator[_AsyncConnection]:
        if db is not None:
            yield db
            return
        async with self.transaction() as own:
            yield own

    async def delete_all_segments(
        self, user_id: str, db: _AsyncConnection | None = None
    ) -> int:
        """Remove every segment belonging to *user_id*. Returns the count."""
        async with self._write(db) as conn:
            cursor = await conn.execute(
                "DELETE FROM scheduled_segments WHERE user_id = ?", (user_id,)
            )
            deleted = cursor.rowcount
        logger.info("Deleted %d segment(s) for user %s", deleted, user_id)
        return deleted

    async def insert_segments(
        self, segments: Sequence[ScheduledSegment], db: _AsyncConnection | None = None
    ) -> int:
        """Bulk-insert *segments*. Returns the number inserted."""
        if not segments:
            return 0
        async with self._write(db) as conn:
            inserted = await conn.executemany(
                f"INSERT INTO scheduled_segments ({_SEGMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                [segment.to_row() for segment in segments],
            )
        logger.info("Inserted %d segment(s)", inserted)
        return inserted

    async def list_segments(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ScheduledSegment]:
        """Return the user's segments starting in ``[start, end)``, by start time."""
        sql = f"SELECT {_SEGMENT_COLUMNS} FROM scheduled_segments WHERE user_id = ?"
        params: list = [user_id]
        if start is not None:
            sql += " AND start_time >= ?"
            params.append(_utc(start))
        if end is not None:
            sql += " AND start_time < ?"
            params.append(_utc(end))
        sql += " ORDER BY start_time"

        db = await self._connect()
        try:
            cursor = await db.execute(sql, tuple(params))
            rows = await cursor.fetchall()
            return [ScheduledSegment.from_row(row) for row in rows]
        finally:
            await db.close()

    async def list_segments_for_display(
        self, user_id: str, day: datetime, tz: tzinfo, tasks: TaskStore
    ) -> list[tuple[ScheduledSegment, str]]:
        """Return ``(segment, task title)`` pairs for one local calendar day."""
        local_midnight = datetime.combine(day.astimezone(tz).date(), datetime.min.time(), tzinfo=tz)
        segments = await self.list_segments(
            user_id, local_midnight, local_midnight + timedelta(days=1)
        )
        titles: dict[str, str] = {}
        for segment in segments:
            if segment.task_id not in titles:
                task = await tasks.get_task(segment.task_id)
                titles[segment.task_id] = task.title if task else ""
        return [(segment, titles[segment.task_id]) for segment in segments]
