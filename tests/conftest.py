"""Shared test fixtures."""

from pathlib import Path

import pytest

from taskplanner.scheduler.store import SegmentStore, TaskStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("taskplanner.config.settings.turso_database_url", "")


@pytest.fixture
def task_store(tmp_path: Path, _no_turso: None) -> TaskStore:
    """TaskStore backed by a temp database."""
    return TaskStore(db_path=tmp_path / "test.db")


@pytest.fixture
def segment_store(tmp_path: Path, _no_turso: None) -> SegmentStore:
    """SegmentStore sharing the task store's temp database."""
    return SegmentStore(db_path=tmp_path / "test.db")
