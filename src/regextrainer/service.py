"""Application service for lessons, step controllers, and saved progress."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from . import __version__
from .config import Settings
from .content_loader import load_lessons
from .controller import ExerciseStepController, StatusCallback
from .errors import StoreUnavailableError
from .highlight import Marker
from .models import Lesson
from .progress import KEY_PREFIX, SCHEMA_VERSION, ProgressStore, progress_key

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = 1


@dataclass(frozen=True)
class LessonState:
    """Lesson progress summary."""

    lesson: Lesson
    completed_steps: int
    total_steps: int
    stage: str


@dataclass(frozen=True)
class ProgressTransferSummary:
    """Row counts for one export or import."""

    lesson_rows: int
    skipped_rows: int


class LessonService:
    """Coordinates lesson content, progress state, and step controllers."""

    def __init__(self, db_path: Path | str, settings: Settings | None = None) -> None:
        """Initialize service with database path."""
        self.settings = settings or Settings()
        self.lessons = load_lessons()
        self.progress = ProgressStore(db_path)

    def list_lessons(self) -> list[Lesson]:
        """Return lessons in teaching order."""
        return sorted(self.lessons.values(), key=lambda item: (item.order, item.id))

    def get_lesson(self, lesson_id: str) -> Lesson | None:
        """Get lesson by id."""
        return self.lessons.get(lesson_id)

    def completed_steps(self, lesson_id: str) -> int:
        """Return completed step count, falling back to 0 when the store is unavailable."""
        try:
            return self.progress.last_step(lesson_id)
        except StoreUnavailableError as exc:
            logger.warning("Progress for '%s' unavailable: %s", lesson_id, exc)
            return 0

    def list_lesson_states(self) -> list[LessonState]:
        """Return progress summaries in teaching order."""
        states: list[LessonState] = []
        for lesson in self.list_lessons():
            total = len(lesson.steps)
            completed = min(self.completed_steps(lesson.id), total)
            if completed >= total:
                stage = "completed"
            elif completed > 0:
                stage = "started"
            else:
                stage = "new"
            states.append(LessonState(lesson=lesson, completed_steps=completed, total_steps=total, stage=stage))
        return states

    def open_lesson(
        self,
        lesson_id: str,
        on_status_changed: StatusCallback | None = None,
        marker: Marker | None = None,
    ) -> ExerciseStepController:
        """Create a controller positioned at the step the learner should resume from."""
        lesson = self.lessons[lesson_id]
        controller = ExerciseStepController(
            lesson_id=lesson.id,
            steps=lesson.steps,
            store=self.progress,
            on_status_changed=on_status_changed,
            settings=self.settings,
            marker=marker,
        )
        resume_at = min(self.completed_steps(lesson.id), len(lesson.steps) - 1)
        controller.load_step(resume_at)
        return controller

    def reset_lesson(self, lesson_id: str) -> bool:
        """Delete saved progress for one lesson."""
        if lesson_id not in self.lessons:
            raise KeyError(lesson_id)
        return self.progress.reset(lesson_id)

    def export_progress(self, export_path: Path | str) -> ProgressTransferSummary:
        """Export all saved lesson progress to a JSON file."""
        records = self.progress.list_records()
        payload = {
            "format_version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "source": {
                "app_version": __version__,
                "schema_version": SCHEMA_VERSION,
            },
            "progress": [
                {"key": progress_key(record.exercise_id), "value": {"lastStep": record.last_completed_step}}
                for record in records
            ],
        }

        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return ProgressTransferSummary(lesson_rows=len(records), skipped_rows=0)

    def import_progress(self, import_path: Path | str) -> ProgressTransferSummary:
        """Merge a progress export into the store, keeping the higher step per lesson."""
        path = Path(import_path)
        raw_obj: object = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw_obj, dict):
            raise ValueError("Import file root must be a JSON object.")
        raw = cast(dict[str, object], raw_obj)

        format_version = _coerce_int(raw.get("format_version", 0))
        if format_version is None:
            raise ValueError("Import file has invalid format_version.")
        if format_version > EXPORT_FORMAT_VERSION:
            raise ValueError(
                f"Import file format version {format_version} is newer than supported {EXPORT_FORMAT_VERSION}."
            )

        rows = _normalize_progress_rows(raw.get("progress"))
        skipped = _count_rows(raw.get("progress")) - len(rows)
        for lesson_id, last_step in rows:
            self.progress.set(lesson_id, last_step)
        if skipped:
            logger.warning("Skipped %d malformed progress rows from %s", skipped, path)
        return ProgressTransferSummary(lesson_rows=len(rows), skipped_rows=skipped)

    def close(self) -> None:
        """Close resources."""
        self.progress.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass


def _count_rows(raw: object) -> int:
    return len(cast(list[object], raw)) if isinstance(raw, list) else 0


def _normalize_progress_rows(raw: object) -> list[tuple[str, int]]:
    """Normalize raw progress rows from an import payload."""
    if not isinstance(raw, list):
        return []
    rows: list[tuple[str, int]] = []
    for item in cast(list[object], raw):
        if not isinstance(item, dict):
            continue
        row = cast(dict[str, object], item)
        key: object = row.get("key")
        if not isinstance(key, str) or not key.startswith(KEY_PREFIX) or len(key) == len(KEY_PREFIX):
            continue
        value: object = row.get("value")
        if not isinstance(value, dict):
            continue
        last_step = _coerce_int(cast(dict[str, object], value).get("lastStep"))
        if last_step is None or last_step < 0:
            continue
        rows.append((key[len(KEY_PREFIX) :], last_step))
    return rows


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce value to int for import normalization."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default
