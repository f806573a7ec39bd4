import json
import sqlite3
from pathlib import Path

import pytest

from regextrainer.errors import StoreUnavailableError
from regextrainer.models import ProgressRecord
from regextrainer.progress import ProgressStore, progress_key


def test_absent_record_counts_as_step_zero() -> None:
    store = ProgressStore(":memory:")
    assert store.get("basics") is None
    assert store.last_step("basics") == 0


def test_set_keeps_maximum_step() -> None:
    store = ProgressStore(":memory:")
    assert store.set("basics", 2) == 2
    assert store.get("basics") == ProgressRecord(exercise_id="basics", last_completed_step=2)
    assert store.set("basics", 1) == 2
    assert store.last_step("basics") == 2
    assert store.set("basics", 3) == 3
    assert store.last_step("basics") == 3


def test_stored_layout_uses_lesson_key_and_json_value() -> None:
    store = ProgressStore(":memory:")
    store.set("flags", 4)
    row = store._conn.execute("SELECT key, value FROM progress").fetchone()  # noqa: SLF001
    assert row["key"] == "lesson.flags"
    assert json.loads(row["value"]) == {"lastStep": 4}
    assert progress_key("flags") == "lesson.flags"


def test_progress_survives_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "progress.db"
    store = ProgressStore(db_path)
    store.set("basics", 5)
    store.close()

    reopened = ProgressStore(db_path)
    assert reopened.last_step("basics") == 5
    assert db_path.exists()


def test_concurrent_writer_cannot_lower_value(tmp_path: Path) -> None:
    db_path = tmp_path / "shared.db"
    first = ProgressStore(db_path)
    second = ProgressStore(db_path)
    first.set("basics", 5)
    assert second.set("basics", 3) == 5
    assert second.last_step("basics") == 5
    assert first.last_step("basics") == 5


def test_migration_sets_user_version_and_schema_history() -> None:
    store = ProgressStore(":memory:")
    version = int(store._conn.execute("PRAGMA user_version").fetchone()[0])  # noqa: SLF001
    assert version == 1
    rows = store._conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()  # noqa: SLF001
    assert [int(row["version"]) for row in rows] == [1]


def test_newer_schema_is_rejected(tmp_path: Path) -> None:
    db_path = tmp_path / "future.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA user_version = 9")
        conn.commit()
    finally:
        conn.close()

    with pytest.raises(StoreUnavailableError):
        ProgressStore(db_path)


def test_malformed_value_reads_as_zero() -> None:
    store = ProgressStore(":memory:")
    with store._conn:  # noqa: SLF001
        store._conn.execute(  # noqa: SLF001
            "INSERT INTO progress (key, value, updated_at) VALUES (?, ?, ?)",
            ("lesson.broken", "not json", "2026-01-01T00:00:00+00:00"),
        )
    assert store.last_step("broken") == 0
    assert store.set("broken", 2) == 2


def test_list_records_and_reset() -> None:
    store = ProgressStore(":memory:")
    store.set("flags", 1)
    store.set("basics", 3)
    assert store.list_records() == [
        ProgressRecord(exercise_id="basics", last_completed_step=3),
        ProgressRecord(exercise_id="flags", last_completed_step=1),
    ]
    assert store.reset("basics") is True
    assert store.reset("basics") is False
    assert store.get("basics") is None


def test_closed_store_reports_unavailable() -> None:
    store = ProgressStore(":memory:")
    store.close()
    with pytest.raises(StoreUnavailableError):
        store.get("basics")
    with pytest.raises(StoreUnavailableError):
        store.set("basics", 1)
