import logging
from typing import Any

import pytest

from regextrainer.logging_setup import LOG_FORMAT, configure_logging


def test_configure_logging_passes_level_and_format(monkeypatch: Any) -> None:
    captured: dict[str, object] = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))
    configure_logging("debug")
    assert captured == {"level": logging.DEBUG, "format": LOG_FORMAT}


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging("LOUD")
