"""Exception types raised by the exercise engine."""

from __future__ import annotations


class RegexTrainerError(Exception):
    """Base class for regextrainer errors."""


class PatternCompileError(RegexTrainerError):
    """Learner or reference pattern does not compile under the given flags."""

    def __init__(self, pattern: str, flags: str, message: str, position: int | None = None) -> None:
        self.pattern = pattern
        self.flags = flags
        self.message = message
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid pattern /{pattern}/{flags}: {message}{where}")


class SpanContractError(RegexTrainerError):
    """Pattern engine produced overlapping, unordered, or out-of-range spans."""


class StoreUnavailableError(RegexTrainerError):
    """Progress store could not be read or written."""


class ContentError(RegexTrainerError, ValueError):
    """Bundled or user-supplied lesson content is invalid."""
