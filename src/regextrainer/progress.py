"""SQLite persistence for per-lesson step progress."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from .errors import StoreUnavailableError
from .models import ProgressRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
KEY_PREFIX = "lesson."


def progress_key(exercise_id: str) -> str:
    """Return the durable key a lesson's progress is stored under."""
    return f"{KEY_PREFIX}{exercise_id}"


class ProgressBackend(Protocol):
    """Interface the step controller needs from a progress store."""

    def get(self, exercise_id: str) -> ProgressRecord | None: ...

    def set(self, exercise_id: str, step_index: int) -> int: ...


class ProgressStore:
    """Durable key-value store of the highest completed step per lesson.

    Values are JSON objects of the shape `{"lastStep": <int>}`. `set` never
    lowers a stored value, so concurrent writers converge on the maximum.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Open database and apply schema migrations."""
        try:
            if isinstance(db_path, Path):
                db_path.parent.mkdir(parents=True, exist_ok=True)
                target = str(db_path)
            else:
                target = db_path
            self._conn = sqlite3.connect(target, timeout=5.0)
            self._conn.row_factory = sqlite3.Row
            self._apply_migrations()
        except (OSError, sqlite3.Error) as exc:
            raise StoreUnavailableError(f"Could not open progress store at {db_path}: {exc}") from exc

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise StoreUnavailableError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the key-value progress table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS progress (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def get(self, exercise_id: str) -> ProgressRecord | None:
        """Return the stored record for a lesson, or None when absent."""
        try:
            row = self._conn.execute(
                "SELECT value FROM progress WHERE key = ?", (progress_key(exercise_id),)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not read progress for '{exercise_id}': {exc}") from exc
        if row is None:
            return None
        return ProgressRecord(exercise_id=exercise_id, last_completed_step=_decode_last_step(str(row["value"])))

    def last_step(self, exercise_id: str) -> int:
        """Return the highest completed step, treating absence as 0."""
        record = self.get(exercise_id)
        return record.last_completed_step if record is not None else 0

    def set(self, exercise_id: str, step_index: int) -> int:
        """Store step_index if it is higher than the stored value; return the stored value."""
        key = progress_key(exercise_id)
        try:
            with self._conn:
                self._conn.execute("BEGIN IMMEDIATE")
                row = self._conn.execute("SELECT value FROM progress WHERE key = ?", (key,)).fetchone()
                current = _decode_last_step(str(row["value"])) if row is not None else 0
                if row is not None and step_index <= current:
                    return current
                stored = max(current, step_index)
                self._conn.execute(
                    """
                    INSERT INTO progress (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, json.dumps({"lastStep": stored}), datetime.now(UTC).isoformat()),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not write progress for '{exercise_id}': {exc}") from exc
        logger.debug("Progress for '%s' advanced to step %d", exercise_id, stored)
        return stored

    def list_records(self) -> list[ProgressRecord]:
        """Return all lesson records ordered by key."""
        try:
            rows = self._conn.execute(
                "SELECT key, value FROM progress WHERE key LIKE ? ORDER BY key", (f"{KEY_PREFIX}%",)
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not list progress: {exc}") from exc
        return [
            ProgressRecord(
                exercise_id=str(row["key"])[len(KEY_PREFIX) :],
                last_completed_step=_decode_last_step(str(row["value"])),
            )
            for row in rows
        ]

    def reset(self, exercise_id: str) -> bool:
        """Delete stored progress for one lesson."""
        try:
            with self._conn:
                cursor = self._conn.execute("DELETE FROM progress WHERE key = ?", (progress_key(exercise_id),))
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Could not reset progress for '{exercise_id}': {exc}") from exc
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def _decode_last_step(raw: str) -> int:
    """Read `lastStep` from a stored JSON value; malformed values count as 0."""
    try:
        value: object = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed progress value %r", raw)
        return 0
    if not isinstance(value, dict):
        logger.warning("Ignoring malformed progress value %r", raw)
        return 0
    last_step = value.get("lastStep", 0)
    if isinstance(last_step, bool) or not isinstance(last_step, int):
        logger.warning("Ignoring malformed progress value %r", raw)
        return 0
    return max(0, last_step)
