"""Runtime settings read from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_PATH = Path(".regextrainer") / "progress.db"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Application settings."""

    db_path: Path = DEFAULT_DB_PATH
    log_level: str = "WARNING"
    # Steps marked `safariAccept` are graded by exact string comparison when enabled.
    honor_literal_fallback: bool = True
    highlight_tag: str = "mark"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from `REGEXTRAINER_*` environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            db_path=Path(env.get("REGEXTRAINER_DB", str(DEFAULT_DB_PATH))),
            log_level=env.get("REGEXTRAINER_LOG_LEVEL", "WARNING").upper(),
            honor_literal_fallback=_parse_bool(env.get("REGEXTRAINER_LITERAL_FALLBACK"), default=True),
            highlight_tag=env.get("REGEXTRAINER_HIGHLIGHT_TAG", "mark"),
        )


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean setting: {value!r}")
