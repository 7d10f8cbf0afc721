"""Tests for TaskStore and SegmentStore — libsql persistence."""

import asyncio
from datetime import UTC, datetime

import pytest
from helpers import TZ, USER, at, make_task

from taskplanner.scheduler.models import ScheduledSegment, SegmentStatus
from taskplanner.scheduler.store import SegmentStore, TaskStore


def _segment(task_id: str = "t1", hour: int = 9, user_id: str = USER, day: int = 3):
    return ScheduledSegment(task_id, user_id, at(day, hour), 30, SegmentStatus.ON_TIME)


# -- TaskStore -----------------------------------------------------------------


async def test_add_and_get_task(task_store: TaskStore) -> None:
    task = make_task("t1", repetition="daily", description="notes")
    await task_store.add_task(task)

    fetched = await task_store.get_task("t1")
    assert fetched == task


async def test_get_task_not_found(task_store: TaskStore) -> None:
    assert await task_store.get_task("nonexistent") is None


async def test_list_tasks_earliest_deadline_first(task_store: TaskStore) -> None:
    await task_store.add_task(make_task("late", deadline=at(5, 17)))
    await task_store.add_task(make_task("early", deadline=at(3, 12)))
    await task_store.add_task(make_task("middle", deadline=at(4, 12)))

    tasks = await task_store.list_tasks(USER)
    assert [t.id for t in tasks] == ["early", "middle", "late"]


async def test_list_tasks_breaks_ties_by_start_time(task_store: TaskStore) -> None:
    await task_store.add_task(make_task("b", start=at(3, 11), deadline=at(3, 17)))
    await task_store.add_task(make_task("a", start=at(3, 9), deadline=at(3, 17)))

    tasks = await task_store.list_tasks(USER)
    assert [t.id for t in tasks] == ["a", "b"]


async def test_list_tasks_compares_instants_not_offsets(task_store: TaskStore) -> None:
    # 13:00 UTC is 08:00 in Chicago, earlier than 09:00 Chicago.
    utc_deadline = datetime(2030, 6, 3, 13, tzinfo=UTC)
    await task_store.add_task(make_task("local", start=at(3, 7), deadline=at(3, 9)))
    await task_store.add_task(make_task("utc", start=at(3, 7), deadline=utc_deadline))

    tasks = await task_store.list_tasks(USER)
    assert [t.id for t in tasks] == ["utc", "local"]


async def test_list_tasks_scoped_to_user(task_store: TaskStore) -> None:
    await task_store.add_task(make_task("mine"))
    await task_store.add_task(make_task("theirs", user_id="someone-else"))

    assert [t.id for t in await task_store.list_tasks(USER)] == ["mine"]


async def test_list_tasks_by_start(task_store: TaskStore) -> None:
    await task_store.add_task(make_task("a", start=at(3, 12), deadline=at(3, 13)))
    await task_store.add_task(make_task("b", start=at(3, 9), deadline=at(4, 13)))

    assert [t.id for t in await task_store.list_tasks_by_start(USER)] == ["b", "a"]


async def test_list_tasks_empty(task_store: TaskStore) -> None:
    assert await task_store.list_tasks(USER) == []


async def test_update_repetition_end_date(task_store: TaskStore) -> None:
    await task_store.add_task(make_task("t1", repetition="daily"))

    assert await task_store.update_repetition_end_date("t1", at(17, 8)) is True
    task = await task_store.get_task("t1")
    assert task is not None
    assert task.repetition_end_date == at(17, 8)


async def test_update_repetition_end_date_missing_task(task_store: TaskStore) -> None:
    assert await task_store.update_repetition_end_date("nope", at(17, 8)) is False


async def test_delete_task(task_store: TaskStore) -> None:
    await task_store.add_task(make_task("t1"))
    assert await task_store.delete_task("t1") is True
    assert await task_store.get_task("t1") is None
    assert await task_store.delete_task("t1") is False


# -- SegmentStore --------------------------------------------------------------


async def test_insert_and_list_segments(segment_store: SegmentStore) -> None:
    segments = [_segment("t1", 11), _segment("t2", 9)]
    assert await segment_store.insert_segments(segments) == 2

    listed = await segment_store.list_segments(USER)
    assert listed == [segments[1], segments[0]]


async def test_insert_empty_is_noop(segment_store: SegmentStore) -> None:
    assert await segment_store.insert_segments([]) == 0


async def test_list_segments_range(segment_store: SegmentStore) -> None:
    await segment_store.insert_segments([_segment(day=3), _segment(day=4), _segment(day=5)])

    listed = await segment_store.list_segments(USER, start=at(4, 0), end=at(5, 0))
    assert [s.start_time.astimezone(TZ).day for s in listed] == [4]


async def test_delete_all_segments_scoped_to_user(segment_store: SegmentStore) -> None:
    await segment_store.insert_segments(
        [_segment("t1"), _segment("t2", 10), _segment("t3", user_id="other")]
    )

    assert await segment_store.delete_all_segments(USER) == 2
    assert await segment_store.list_segments(USER) == []
    assert len(await segment_store.list_segments("other")) == 1


async def test_transaction_commits_together(segment_store: SegmentStore) -> None:
    await segment_store.insert_segments([_segment("old")])

    async with segment_store.transaction() as db:
        await segment_store.delete_all_segments(USER, db=db)
        await segment_store.insert_segments([_segment("new")], db=db)

    assert [s.task_id for s in await segment_store.list_segments(USER)] == ["new"]


async def test_transaction_rolls_back_on_error(segment_store: SegmentStore) -> None:
    await segment_store.insert_segments([_segment("old")])

    with pytest.raises(RuntimeError):
        async with segment_store.transaction() as db:
            await segment_store.delete_all_segments(USER, db=db)
            raise RuntimeError("insert failed")

    assert [s.task_id for s in await segment_store.list_segments(USER)] == ["old"]


async def test_write_outside_transaction_does_not_join_it(segment_store: SegmentStore) -> None:
    await segment_store.insert_segments([_segment("old")])

    with pytest.raises(RuntimeError):
        async with segment_store.transaction() as db:
            pending = asyncio.create_task(segment_store.insert_segments([_segment("other", 12)]))
            await asyncio.sleep(0)
            await segment_store.delete_all_segments(USER, db=db)
            raise RuntimeError("abort")
    await pending

    assert sorted(s.task_id for s in await segment_store.list_segments(USER)) == ["old", "other"]


async def test_transactions_are_serialised(segment_store: SegmentStore) -> None:
    order: list[str] = []

    async def run(name: str) -> None:
        async with segment_store.transaction() as db:
            order.append(f"{name}-start")
            await segment_store.insert_segments([_segment(name, user_id=name)], db=db)
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(run("alice"), run("bob"))

    assert order == ["alice-start", "alice-end", "bob-start", "bob-end"]
    assert len(await segment_store.list_segments("alice")) == 1
    assert len(await segment_store.list_segments("bob")) == 1


async def test_list_segments_for_display(
    task_store: TaskStore, segment_store: SegmentStore
) -> None:
    await task_store.add_task(make_task("t1", title="Write report"))
    await segment_store.insert_segments(
        [_segment("t1", 9), _segment("gone", 10), _segment("t1", 9, day=4)]
    )

    pairs = await segment_store.list_segments_for_display(USER, at(3, 12), TZ, task_store)
    assert [(s.task_id, title) for s, title in pairs] == [("t1", "Write report"), ("gone", "")]


# -- Singleton -----------------------------------------------------------------


def test_singletons_are_per_store() -> None:
    TaskStore._reset()
    SegmentStore._reset()
    try:
        assert TaskStore.get() is TaskStore.get()
        assert SegmentStore.get() is SegmentStore.get()
        assert TaskStore.get() is not SegmentStore.get()
    finally:
        TaskStore._reset()
        SegmentStore._reset()


def test_singleton_reset() -> None:
    TaskStore._reset()
    try:
        a = TaskStore.get()
        TaskStore._reset()
        assert TaskStore.get() is not a
    finally:
        TaskStore._reset()
