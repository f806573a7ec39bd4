"""Interactive regular expression lessons with highlighted matches and saved progress."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .controller import ExerciseStepController
from .engine import compile_pattern
from .errors import PatternCompileError, RegexTrainerError, SpanContractError, StoreUnavailableError
from .progress import ProgressStore

__all__ = [
    "ExerciseStepController",
    "PatternCompileError",
    "ProgressStore",
    "RegexTrainerError",
    "SpanContractError",
    "StoreUnavailableError",
    "__version__",
    "compile_pattern",
]


def _source_checkout_version() -> str | None:
    """Read `[project].version` when running from a source checkout."""
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if not pyproject.is_file():
        return None
    with pyproject.open("rb") as handle:
        project = tomllib.load(handle).get("project", {})
    if project.get("name") != "regextrainer":
        return None
    return project.get("version")


__version__ = _source_checkout_version() or ""
if not __version__:
    try:
        __version__ = version("regextrainer")
    except PackageNotFoundError:
        __version__ = "0+unknown"
