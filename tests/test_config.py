from pathlib import Path

import pytest

from regextrainer.config import DEFAULT_DB_PATH, Settings


def test_defaults_without_environment() -> None:
    settings = Settings.from_env({})
    assert settings == Settings()
    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.log_level == "WARNING"
    assert settings.honor_literal_fallback is True
    assert settings.highlight_tag == "mark"


def test_environment_overrides() -> None:
    settings = Settings.from_env(
        {
            "REGEXTRAINER_DB": "/tmp/other.db",
            "REGEXTRAINER_LOG_LEVEL": "debug",
            "REGEXTRAINER_LITERAL_FALLBACK": "off",
            "REGEXTRAINER_HIGHLIGHT_TAG": "span",
        }
    )
    assert settings.db_path == Path("/tmp/other.db")
    assert settings.log_level == "DEBUG"
    assert settings.honor_literal_fallback is False
    assert settings.highlight_tag == "span"


@pytest.mark.parametrize("value", ["1", "true", "Yes", " on "])
def test_truthy_literal_fallback_values(value: str) -> None:
    assert Settings.from_env({"REGEXTRAINER_LITERAL_FALLBACK": value}).honor_literal_fallback is True


def test_invalid_boolean_rejected() -> None:
    with pytest.raises(ValueError, match="Invalid boolean"):
        Settings.from_env({"REGEXTRAINER_LITERAL_FALLBACK": "maybe"})
