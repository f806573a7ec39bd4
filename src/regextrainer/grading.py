"""Grading policies deciding whether an attempt passes an exercise."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import Settings
from .engine import Span, compile_pattern
from .errors import PatternCompileError
from .models import ExerciseDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading one attempt."""

    matched: bool
    success: bool
    error: PatternCompileError | None = None
    spans: tuple[Span, ...] = ()

    @property
    def compiled(self) -> bool:
        """Return whether the learner pattern compiled."""
        return self.error is None


class StandardPolicy:
    """Grade by running learner and reference patterns against the content."""

    skippable = False

    def grade(self, definition: ExerciseDefinition, pattern: str, flags: str, changed: bool) -> GradeResult:
        try:
            matcher = compile_pattern(pattern, flags)
        except PatternCompileError as exc:
            return GradeResult(matched=False, success=False, error=exc)

        spans = _non_empty(matcher.find_all(definition.content))
        matched = bool(spans)
        if not matched:
            return GradeResult(matched=False, success=False, spans=spans)
        # Untouched defaults pass on any match; edited attempts must reproduce the reference spans.
        if not changed:
            return GradeResult(matched=True, success=True, spans=spans)
        return GradeResult(matched=True, success=spans == reference_spans(definition), spans=spans)


class LiteralFallbackPolicy:
    """Grade by exact string comparison with the reference pattern.

    Used for steps whose reference pattern the configured engine cannot be
    trusted to evaluate. No spans are computed; the learner may skip the step.
    """

    skippable = True

    def grade(self, definition: ExerciseDefinition, pattern: str, flags: str, changed: bool) -> GradeResult:
        success = pattern == definition.reference_pattern
        return GradeResult(matched=success, success=success)


GradingPolicy = StandardPolicy | LiteralFallbackPolicy


def reference_spans(definition: ExerciseDefinition) -> tuple[Span, ...] | None:
    """Return non-empty spans of the reference pattern, or None if it does not compile."""
    try:
        matcher = compile_pattern(definition.reference_pattern, definition.reference_flags)
    except PatternCompileError as exc:
        logger.warning("Reference pattern for step '%s' does not compile: %s", definition.title, exc)
        return None
    return _non_empty(matcher.find_all(definition.content))


def select_policy(definition: ExerciseDefinition, settings: Settings | None = None) -> GradingPolicy:
    """Pick the grading policy configured for a step."""
    honor = settings.honor_literal_fallback if settings is not None else True
    if definition.literal_fallback and honor:
        return LiteralFallbackPolicy()
    return StandardPolicy()


def _non_empty(spans: list[Span]) -> tuple[Span, ...]:
    return tuple(span for span in spans if span[1] > span[0])
