"""Core domain models for regex exercises and learner attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class ExerciseDefinition:
    """One exercise step."""

    title: str
    content: str
    reference_patterns: tuple[str, ...]
    reference_flags: str = ""
    initial_value: str = ""
    initial_flags: str = ""
    interactive: bool = True
    read_only: bool = False
    use_flags_control: bool = False
    literal_fallback: bool = False
    cursor_position: int = 0

    @property
    def reference_pattern(self) -> str:
        """Return the pattern attempts are graded against."""
        return self.reference_patterns[0] if self.reference_patterns else ""


@dataclass(frozen=True)
class Lesson:
    """Ordered lesson containing exercise steps."""

    id: str
    title: str
    description: str
    order: int
    steps: list[ExerciseDefinition]


class AttemptStatus(str, Enum):
    """Evaluation state of the active step."""

    IDLE = "idle"
    ERROR = "error"
    MATCHED = "matched"
    SUCCESS = "success"


@dataclass
class AttemptState:
    """Mutable learner input and derived evaluation result for one step."""

    pattern: str = ""
    flags: str = ""
    changed: bool = False
    status: AttemptStatus = AttemptStatus.IDLE
    highlighted_content: str = ""
    spans: tuple[tuple[int, int], ...] = field(default_factory=tuple)
    error_message: str = ""


@dataclass(frozen=True)
class ProgressRecord:
    """Highest completed step for one lesson."""

    exercise_id: str
    last_completed_step: int
