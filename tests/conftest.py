from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from regextrainer.errors import StoreUnavailableError  # noqa: E402
from regextrainer.models import ExerciseDefinition, ProgressRecord  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    Overrides pytest's builtin ``tmp_path`` so SQLite files stay under
    ``.tmp_pytest/`` in the project directory.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


class MemoryStore:
    """Dict-backed progress store double."""

    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self.values: dict[str, int] = dict(initial or {})
        self.set_calls: list[tuple[str, int]] = []

    def get(self, exercise_id: str) -> ProgressRecord | None:
        if exercise_id not in self.values:
            return None
        return ProgressRecord(exercise_id=exercise_id, last_completed_step=self.values[exercise_id])

    def set(self, exercise_id: str, step_index: int) -> int:
        self.set_calls.append((exercise_id, step_index))
        self.values[exercise_id] = max(self.values.get(exercise_id, 0), step_index)
        return self.values[exercise_id]


class BrokenStore:
    """Progress store double whose reads and writes always fail."""

    def get(self, exercise_id: str) -> ProgressRecord | None:
        raise StoreUnavailableError("disk gone")

    def set(self, exercise_id: str, step_index: int) -> int:
        raise StoreUnavailableError("disk gone")


def make_step(**overrides: object) -> ExerciseDefinition:
    """Build a step definition with the `cat dog cat` defaults."""
    values: dict[str, object] = {
        "title": "Global flag",
        "content": "cat dog cat",
        "reference_patterns": ("cat",),
        "reference_flags": "g",
        "initial_flags": "g",
    }
    values.update(overrides)
    return ExerciseDefinition(**values)  # type: ignore[arg-type]
