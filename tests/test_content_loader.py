import json
from pathlib import Path
from typing import Any

import pytest

from regextrainer.content_loader import load_lessons, load_lessons_from_dir
from regextrainer.errors import ContentError


def _write_lesson(root: Path, name: str, payload: dict[str, Any]) -> None:
    root.mkdir(parents=True, exist_ok=True)
    (root / f"{name}.json").write_text(json.dumps(payload), encoding="utf-8")


def _lesson(lesson_id: str = "l", steps: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "id": lesson_id,
        "title": "L",
        "description": "D",
        "order": 1,
        "steps": steps if steps is not None else [{"title": "S", "content": "cat", "regex": ["cat"], "flags": "g"}],
    }


def test_load_lessons_contains_bundled_content() -> None:
    lessons = load_lessons()
    assert {"basics", "flags", "groups"} <= set(lessons)
    basics = lessons["basics"]
    assert basics.order == 1
    assert basics.steps[0].interactive is False
    char_sets = basics.steps[3]
    assert char_sets.reference_patterns == ("b[eo]r", "b[oe]r")
    assert char_sets.cursor_position == 2
    assert lessons["groups"].steps[-1].literal_fallback is True


def test_load_lessons_from_dir_maps_original_keys(tmp_path: Path) -> None:
    root = tmp_path / "loader"
    step = {
        "title": "Sets",
        "content": "bar ber",
        "regex": ["b[ae]r"],
        "flags": "g",
        "initialValue": "b[]r",
        "initialFlags": "g",
        "readOnly": False,
        "useFlagsControl": True,
        "safariAccept": True,
        "cursorPosition": 2,
    }
    _write_lesson(root, "l", _lesson(steps=[step]))

    lessons = load_lessons_from_dir(root)
    loaded = lessons["l"].steps[0]
    assert loaded.reference_patterns == ("b[ae]r",)
    assert loaded.reference_flags == "g"
    assert loaded.initial_value == "b[]r"
    assert loaded.use_flags_control is True
    assert loaded.literal_fallback is True
    assert loaded.cursor_position == 2


def test_single_string_regex_is_accepted(tmp_path: Path) -> None:
    root = tmp_path / "loader-str"
    _write_lesson(root, "l", _lesson(steps=[{"content": "cat", "regex": "cat"}]))
    step = load_lessons_from_dir(root)["l"].steps[0]
    assert step.reference_patterns == ("cat",)
    assert step.title == "Step 1"


def test_duplicate_lesson_ids_rejected(tmp_path: Path) -> None:
    root = tmp_path / "loader-dup"
    _write_lesson(root, "a", _lesson("same"))
    _write_lesson(root, "b", _lesson("same"))
    with pytest.raises(ContentError, match="Duplicate lesson id"):
        load_lessons_from_dir(root)


def test_lesson_without_steps_rejected(tmp_path: Path) -> None:
    root = tmp_path / "loader-empty"
    _write_lesson(root, "l", _lesson(steps=[]))
    with pytest.raises(ContentError):
        load_lessons_from_dir(root)


def test_interactive_step_requires_reference(tmp_path: Path) -> None:
    root = tmp_path / "loader-noref"
    _write_lesson(root, "l", _lesson(steps=[{"content": "x"}]))
    with pytest.raises(ContentError):
        load_lessons_from_dir(root)


def test_non_interactive_step_needs_no_reference(tmp_path: Path) -> None:
    root = tmp_path / "loader-intro"
    _write_lesson(root, "l", _lesson(steps=[{"content": "intro", "interactive": False}]))
    assert load_lessons_from_dir(root)["l"].steps[0].reference_patterns == ()


def test_invalid_reference_pattern_rejected(tmp_path: Path) -> None:
    root = tmp_path / "loader-bad"
    _write_lesson(root, "l", _lesson(steps=[{"content": "x", "regex": ["("]}]))
    with pytest.raises(ValueError, match="lesson 'l'"):
        load_lessons_from_dir(root)


def test_literal_fallback_step_skips_pattern_validation(tmp_path: Path) -> None:
    root = tmp_path / "loader-literal"
    _write_lesson(root, "l", _lesson(steps=[{"content": "x", "regex": ["(?<=a+)b"], "safariAccept": True}]))
    assert load_lessons_from_dir(root)["l"].steps[0].literal_fallback is True


def test_cursor_position_clamped_to_initial_value(tmp_path: Path) -> None:
    root = tmp_path / "loader-cursor"
    _write_lesson(
        root, "l", _lesson(steps=[{"content": "x", "regex": ["x"], "initialValue": "ab", "cursorPosition": 9}])
    )
    assert load_lessons_from_dir(root)["l"].steps[0].cursor_position == 2
