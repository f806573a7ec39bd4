"""Step-by-step exercise state machine."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from .config import Settings
from .errors import StoreUnavailableError
from .grading import GradingPolicy, select_policy
from .highlight import Marker, html_marker, render_line_breaks, render_markup, wrap_spans
from .models import AttemptState, AttemptStatus, ExerciseDefinition
from .progress import ProgressBackend

logger = logging.getLogger(__name__)

StatusCallback = Callable[[bool], None]


class ExerciseStepController:
    """Evaluate learner input for the active step of one lesson.

    Every pattern or flag edit is evaluated synchronously, so `state` always
    reflects the latest input. `on_status_changed` receives `True` when the
    status enters `SUCCESS` and `False` when it leaves it. Loading a step resets
    the status to `IDLE`, so a step that is solved on entry still reports `True`.
    """

    def __init__(
        self,
        lesson_id: str,
        steps: Sequence[ExerciseDefinition],
        store: ProgressBackend,
        on_status_changed: StatusCallback | None = None,
        settings: Settings | None = None,
        marker: Marker | None = None,
    ) -> None:
        if not steps:
            raise ValueError(f"Lesson '{lesson_id}' has no steps.")
        self.lesson_id = lesson_id
        self.steps = list(steps)
        self._store = store
        self._on_status_changed = on_status_changed
        self._settings = settings or Settings()
        self._marker = marker or html_marker(self._settings.highlight_tag, {"class": "match"})
        self.step_index = 0
        self.state = AttemptState()
        self.review = False
        self._policy: GradingPolicy = select_policy(self.steps[0], self._settings)
        self._evaluating = False
        self._reported_success = False
        self._completion_recorded = False

    @property
    def definition(self) -> ExerciseDefinition:
        """Return the active step definition."""
        return self.steps[self.step_index]

    @property
    def policy(self) -> GradingPolicy:
        return self._policy

    @property
    def status(self) -> AttemptStatus:
        return self.state.status

    @property
    def title(self) -> str:
        return self.definition.title

    @property
    def cursor_position(self) -> int:
        """Return the caret offset to restore after the input is repopulated."""
        return min(self.definition.cursor_position, len(self.state.pattern))

    @property
    def hint(self) -> tuple[tuple[str, ...], str]:
        """Return reference patterns and flags for the hint display."""
        return self.definition.reference_patterns, self.definition.reference_flags

    @property
    def display_content(self) -> str:
        """Return escaped, highlighted content with line breaks rendered for display."""
        markup = render_markup(self.definition.content, self.state.spans, self._marker)
        return render_line_breaks(markup, self._marker)

    @property
    def is_last_step(self) -> bool:
        return self.step_index == len(self.steps) - 1

    def load_step(self, index: int) -> AttemptStatus:
        """Enter a step, pre-filling review or fresh input, and evaluate once."""
        if not 0 <= index < len(self.steps):
            raise IndexError(f"Step {index} out of range for lesson '{self.lesson_id}'.")
        self.step_index = index
        definition = self.definition
        self._policy = select_policy(definition, self._settings)
        self._completion_recorded = False
        self.review = index < self._last_completed_step()
        if self.review:
            pattern, flags = definition.reference_pattern, definition.reference_flags
        else:
            pattern, flags = definition.initial_value, definition.initial_flags
        self.state = AttemptState(
            pattern=pattern,
            flags=flags,
            changed=False,
            status=AttemptStatus.IDLE,
            highlighted_content=definition.content,
        )
        # Loading passes through IDLE, which leaves SUCCESS.
        self._evaluating = True
        try:
            self._notify()
        finally:
            self._evaluating = False
        logger.debug("Loaded step %d of '%s' (review=%s)", index, self.lesson_id, self.review)
        return self.evaluate()

    def set_pattern(self, pattern: str) -> AttemptStatus:
        """Apply a learner pattern edit and re-evaluate."""
        if self.definition.read_only:
            logger.debug("Ignoring edit of read-only step %d", self.step_index)
            return self.state.status
        return self._edit(pattern=pattern)

    def set_flags(self, flags: str) -> AttemptStatus:
        """Apply a learner flag edit and re-evaluate; ignored unless the step exposes flags."""
        if not self.definition.use_flags_control:
            logger.debug("Ignoring flag edit of step %d without flag control", self.step_index)
            return self.state.status
        return self._edit(flags=flags)

    def _edit(self, pattern: str | None = None, flags: str | None = None) -> AttemptStatus:
        if self._evaluating:
            logger.warning("Dropping edit received during evaluation of step %d", self.step_index)
            return self.state.status
        if pattern is not None:
            self.state.pattern = pattern
        if flags is not None:
            self.state.flags = flags
        self.state.changed = True
        return self.evaluate()

    def evaluate(self) -> AttemptStatus:
        """Grade current input and refresh status and highlighted content."""
        if self._evaluating:
            logger.debug("Ignoring re-entrant evaluation of step %d", self.step_index)
            return self.state.status
        self._evaluating = True
        try:
            self._apply_grade()
            self._notify()
        finally:
            self._evaluating = False
        return self.state.status

    def _apply_grade(self) -> None:
        definition = self.definition
        state = self.state
        state.error_message = ""
        if not definition.interactive:
            state.status = AttemptStatus.SUCCESS
            state.highlighted_content = definition.content
            state.spans = ()
            return

        result = self._policy.grade(definition, state.pattern, state.flags, state.changed)
        state.spans = result.spans
        if result.error is not None:
            state.status = AttemptStatus.ERROR
            state.highlighted_content = definition.content
            state.error_message = str(result.error)
            return

        state.highlighted_content = wrap_spans(definition.content, result.spans, self._marker)
        if result.success:
            state.status = AttemptStatus.SUCCESS
        elif result.matched:
            state.status = AttemptStatus.MATCHED
        else:
            state.status = AttemptStatus.ERROR

    def skip(self) -> bool:
        """Force success on a literal-fallback step; return whether the skip applied."""
        if not self._policy.skippable:
            return False
        self.state.status = AttemptStatus.SUCCESS
        self.state.highlighted_content = self.definition.content
        self.state.spans = ()
        self.state.error_message = ""
        self._notify()
        return True

    def record_completion(self) -> None:
        """Persist completion of a solved step once per step load."""
        if self.state.status is not AttemptStatus.SUCCESS or self._completion_recorded:
            return
        self._completion_recorded = True
        try:
            self._store.set(self.lesson_id, self.step_index + 1)
        except StoreUnavailableError as exc:
            logger.warning("Progress for '%s' not saved: %s", self.lesson_id, exc)

    def advance(self) -> bool:
        """Record completion and load the next step; return False when the lesson is finished.

        Raises:
            ValueError: the current step is not solved.
        """
        if self.state.status is not AttemptStatus.SUCCESS:
            raise ValueError(f"Step {self.step_index} of '{self.lesson_id}' is not solved.")
        self.record_completion()
        if self.is_last_step:
            return False
        self.load_step(self.step_index + 1)
        return True

    def go_back(self) -> bool:
        """Load the previous step if there is one."""
        if self.step_index == 0:
            return False
        self.load_step(self.step_index - 1)
        return True

    def _last_completed_step(self) -> int:
        try:
            record = self._store.get(self.lesson_id)
        except StoreUnavailableError as exc:
            logger.warning("Progress for '%s' unavailable, starting fresh: %s", self.lesson_id, exc)
            return 0
        return record.last_completed_step if record is not None else 0

    def _notify(self) -> None:
        success = self.state.status is AttemptStatus.SUCCESS
        if success == self._reported_success:
            return
        self._reported_success = success
        if self._on_status_changed is not None:
            self._on_status_changed(success)
