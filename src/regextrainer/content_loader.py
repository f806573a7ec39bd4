"""Load declarative lesson content from bundled JSON resources."""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any

from .engine import compile_pattern
from .errors import ContentError, PatternCompileError
from .models import ExerciseDefinition, Lesson

logger = logging.getLogger(__name__)

CONTENT_PACKAGE = "regextrainer.content.lessons"


def _step_from_dict(lesson_id: str, position: int, raw: dict[str, Any]) -> ExerciseDefinition:
    """Build an exercise step from raw JSON content."""
    raw_patterns = raw.get("regex", [])
    if isinstance(raw_patterns, str):
        raw_patterns = [raw_patterns]
    patterns = tuple(str(value) for value in raw_patterns if str(value))
    interactive = bool(raw.get("interactive", True))
    if interactive and not patterns:
        raise ContentError(f"Step {position} of lesson '{lesson_id}' has no reference pattern.")

    initial_value = str(raw.get("initialValue") or "")
    cursor_position = int(raw.get("cursorPosition") or 0)
    if cursor_position < 0:
        raise ContentError(f"Step {position} of lesson '{lesson_id}' has a negative cursorPosition.")
    if cursor_position > len(initial_value):
        logger.warning(
            "Clamping cursorPosition %d to %d in step %d of lesson '%s'",
            cursor_position,
            len(initial_value),
            position,
            lesson_id,
        )
        cursor_position = len(initial_value)

    return ExerciseDefinition(
        title=str(raw.get("title", f"Step {position + 1}")),
        content=str(raw.get("content", "")),
        reference_patterns=patterns,
        reference_flags=str(raw.get("flags") or ""),
        initial_value=initial_value,
        initial_flags=str(raw.get("initialFlags") or ""),
        interactive=interactive,
        read_only=bool(raw.get("readOnly", False)),
        use_flags_control=bool(raw.get("useFlagsControl", False)),
        literal_fallback=bool(raw.get("safariAccept", False)),
        cursor_position=cursor_position,
    )


def _lesson_from_dict(raw: dict[str, Any]) -> Lesson:
    """Build a lesson from raw JSON content."""
    lesson_id = str(raw["id"])
    steps = [_step_from_dict(lesson_id, index, item) for index, item in enumerate(raw.get("steps", []))]
    if not steps:
        raise ContentError(f"Lesson '{lesson_id}' has no steps.")
    return Lesson(
        id=lesson_id,
        title=str(raw["title"]),
        description=str(raw.get("description", "")),
        order=int(raw.get("order", 0)),
        steps=steps,
    )


def load_lessons() -> dict[str, Lesson]:
    """Load bundled lessons."""
    lessons: dict[str, Lesson] = {}
    for entry in sorted(resources.files(CONTENT_PACKAGE).iterdir(), key=lambda item: item.name):
        if entry.name.endswith(".json"):
            raw = json.loads(entry.read_text(encoding="utf-8-sig"))
            _add_lesson(lessons, _lesson_from_dict(raw))
    _validate_reference_patterns(lessons)
    return lessons


def load_lessons_from_dir(path: Path) -> dict[str, Lesson]:
    """Load lessons from directory for tests/tools."""
    lessons: dict[str, Lesson] = {}
    for file_path in sorted(path.glob("*.json")):
        raw = json.loads(file_path.read_text(encoding="utf-8-sig"))
        _add_lesson(lessons, _lesson_from_dict(raw))
    _validate_reference_patterns(lessons)
    return lessons


def _add_lesson(lessons: dict[str, Lesson], lesson: Lesson) -> None:
    if lesson.id in lessons:
        raise ContentError(f"Duplicate lesson id: {lesson.id}")
    lessons[lesson.id] = lesson


def _validate_reference_patterns(lessons: dict[str, Lesson]) -> None:
    """Validate that graded reference patterns compile under their flags."""
    for lesson in lessons.values():
        for index, step in enumerate(lesson.steps):
            if not step.interactive or step.literal_fallback:
                continue
            for pattern in step.reference_patterns:
                try:
                    compile_pattern(pattern, step.reference_flags)
                except PatternCompileError as exc:
                    raise ContentError(f"Step {index} of lesson '{lesson.id}': {exc}") from exc
