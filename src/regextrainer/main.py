"""CLI entrypoint for the regex exercise trainer."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from pathlib import Path

from .config import Settings
from .controller import ExerciseStepController
from .engine import compile_pattern
from .errors import PatternCompileError, StoreUnavailableError
from .highlight import text_marker, wrap_spans
from .logging_setup import configure_logging
from .models import AttemptStatus
from .service import LessonService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
HIGHLIGHT_ON = "\x1b[7m"
HIGHLIGHT_OFF = "\x1b[0m"
TERMINAL_MARKER = text_marker(HIGHLIGHT_ON, HIGHLIGHT_OFF)
BACK_COMMANDS = {":back", ":b"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
NEXT_COMMANDS = {":next", ":n"}
PREV_COMMANDS = {":prev", ":p"}
HINT_COMMANDS = {":hint", ":h"}
SKIP_COMMAND = ":skip"
FLAGS_COMMAND = ":flags"
CLEAR_COMMAND = ":clear"
LESSON_COMMANDS = (
    BACK_COMMANDS | FLOW_EXIT_COMMANDS | NEXT_COMMANDS | PREV_COMMANDS | HINT_COMMANDS | {SKIP_COMMAND, CLEAR_COMMAND}
)
MENU_QUIT_COMMANDS = {"q"}
STATUS_LABELS = {
    AttemptStatus.IDLE: "Waiting for a pattern.",
    AttemptStatus.ERROR: "No match.",
    AttemptStatus.MATCHED: "Matches found, but not the expected ones.",
    AttemptStatus.SUCCESS: "Correct.",
}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service(settings: Settings) -> LessonService:
    """Create app service with configured database path."""
    return LessonService(db_path=settings.db_path, settings=settings)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="regextrainer", description="Interactive regular expression lessons")
    parser.add_argument("--db", type=Path, default=None, help="progress database path")
    parser.add_argument("--log-level", default=None, help="logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("play", help="run the interactive lesson shell (default)")
    subparsers.add_parser("lessons", help="list lessons and saved progress")
    check = subparsers.add_parser("check", help="highlight matches of a pattern in a text")
    check.add_argument("pattern")
    check.add_argument("text")
    check.add_argument("--flags", default="g")
    reset = subparsers.add_parser("reset", help="clear saved progress for a lesson")
    reset.add_argument("lesson_id")
    export = subparsers.add_parser("export", help="write saved progress to a JSON file")
    export.add_argument("path", type=Path)
    importer = subparsers.add_parser("import", help="merge saved progress from a JSON file")
    importer.add_argument("path", type=Path)
    return parser


def run(argv: list[str] | None = None, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.db is not None or args.log_level is not None:
        settings = Settings(
            db_path=args.db if args.db is not None else settings.db_path,
            log_level=(args.log_level or settings.log_level).upper(),
            honor_literal_fallback=settings.honor_literal_fallback,
            highlight_tag=settings.highlight_tag,
        )
    configure_logging(settings.log_level)

    if args.command == "check":
        return check_pattern(args.pattern, args.text, args.flags, print_fn)
    if args.command == "lessons":
        return _with_service(settings, print_fn, lambda service: _lessons_flow(service, print_fn))
    if args.command == "reset":
        return _with_service(settings, print_fn, lambda service: _reset_flow(service, args.lesson_id, print_fn))
    if args.command == "export":
        return _with_service(settings, print_fn, lambda service: _export_flow(service, args.path, print_fn))
    if args.command == "import":
        return _with_service(settings, print_fn, lambda service: _import_flow(service, args.path, print_fn))
    return play_shell(settings=settings, print_fn=print_fn)


def _with_service(settings: Settings, print_fn: PrintFn, action: Callable[[LessonService], int]) -> int:
    try:
        service = _service(settings)
    except StoreUnavailableError as exc:
        print_fn(f"Progress store unavailable: {exc}")
        return 1
    try:
        return action(service)
    finally:
        service.close()


def check_pattern(pattern: str, text: str, flags: str, print_fn: PrintFn) -> int:
    """Print text with matches of pattern highlighted."""
    try:
        matcher = compile_pattern(pattern, flags)
    except PatternCompileError as exc:
        print_fn(str(exc))
        return 2
    spans = [span for span in matcher.find_all(text) if span[1] > span[0]]
    print_fn(wrap_spans(text, spans, TERMINAL_MARKER))
    print_fn(f"{len(spans)} match(es): " + ", ".join(f"{start}-{end}" for start, end in spans))
    return 0 if spans else 1


def _lessons_flow(service: LessonService, print_fn: PrintFn) -> int:
    """Print lesson table with saved progress."""
    states = service.list_lesson_states()
    id_width = max(len("Lesson"), max(len(state.lesson.id) for state in states))
    stage_width = max(len("Stage"), max(len(state.stage) for state in states))
    header = f"{'Lesson':<{id_width}} {'Stage':<{stage_width}} {'Steps':>7} Title"
    print_fn(header)
    print_fn("-" * len(header))
    for state in states:
        steps = f"{state.completed_steps}/{state.total_steps}"
        print_fn(f"{state.lesson.id:<{id_width}} {state.stage:<{stage_width}} {steps:>7} {state.lesson.title}")
    return 0


def _reset_flow(service: LessonService, lesson_id: str, print_fn: PrintFn) -> int:
    try:
        removed = service.reset_lesson(lesson_id)
    except KeyError:
        print_fn(f"Unknown lesson: {lesson_id}")
        return 1
    print_fn(f"Progress for '{lesson_id}' cleared." if removed else f"No saved progress for '{lesson_id}'.")
    return 0


def _export_flow(service: LessonService, path: Path, print_fn: PrintFn) -> int:
    """Export saved lesson progress to a JSON file."""
    try:
        summary = service.export_progress(path)
    except (OSError, StoreUnavailableError) as exc:
        print_fn(f"Export failed: {exc}")
        return 1
    print_fn(f"Exported progress to {path}")
    print_fn(f"- lesson rows: {summary.lesson_rows}")
    return 0


def _import_flow(service: LessonService, path: Path, print_fn: PrintFn) -> int:
    """Merge lesson progress from a JSON file."""
    try:
        summary = service.import_progress(path)
    except (OSError, ValueError, StoreUnavailableError) as exc:
        print_fn(f"Import failed: {exc}")
        return 1
    print_fn(f"Imported progress from {path}")
    print_fn(f"- lesson rows: {summary.lesson_rows}")
    print_fn(f"- skipped rows: {summary.skipped_rows}")
    return 0


def play_shell(settings: Settings | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run persistent menu-driven shell."""
    try:
        service = _service(settings or Settings.from_env())
    except StoreUnavailableError as exc:
        print_fn(f"Progress store unavailable: {exc}")
        return 1
    try:
        while True:
            lessons = service.list_lesson_states()
            print_fn("\n=== Regex Lessons ===")
            for idx, state in enumerate(lessons, start=1):
                print_fn(f"{idx}) {state.lesson.title} [{state.completed_steps}/{state.total_steps}] {state.stage}")
            print_fn("q) Quit")
            choice = input_fn("Choose lesson: ").strip().lower()
            if choice in MENU_QUIT_COMMANDS:
                return 0
            if not choice.isdigit() or not (0 <= int(choice) - 1 < len(lessons)):
                print_fn("Invalid choice.")
                continue
            try:
                _run_lesson(service, lessons[int(choice) - 1].lesson.id, input_fn, print_fn)
            except QuitApp:
                return 0
    finally:
        service.close()


def _run_lesson(service: LessonService, lesson_id: str, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Walk through lesson steps until finished or the learner leaves."""
    lesson = service.lessons[lesson_id]

    def announce(solved: bool) -> None:
        if solved:
            print_fn("Step solved.")

    controller = service.open_lesson(lesson_id, on_status_changed=announce, marker=TERMINAL_MARKER)
    print_fn(f"\nStarting lesson: {lesson.title}")
    if lesson.description:
        print_fn(lesson.description)
    print_fn("Commands: :next, :prev, :hint, :flags <letters>, :skip, :clear, :b (back), :q (quit)")
    _show_step(controller, print_fn)

    while True:
        raw = input_fn("Pattern: ")
        command = _lesson_command(raw)
        if command in BACK_COMMANDS or command in FLOW_EXIT_COMMANDS:
            controller.record_completion()
            if command in FLOW_EXIT_COMMANDS:
                raise QuitApp()
            print_fn("Leaving lesson. Progress saved.")
            return
        if command in NEXT_COMMANDS or (not raw and controller.status is AttemptStatus.SUCCESS):
            if controller.status is not AttemptStatus.SUCCESS:
                print_fn("Solve this step first.")
                continue
            if not controller.advance():
                print_fn("Lesson completed.")
                return
            _show_step(controller, print_fn)
            continue
        if command in PREV_COMMANDS:
            if controller.go_back():
                _show_step(controller, print_fn)
            else:
                print_fn("Already at the first step.")
            continue
        if command in HINT_COMMANDS:
            patterns, flags = controller.hint
            for pattern in patterns:
                print_fn(f"Hint: /{pattern}/{flags}")
            continue
        if command == SKIP_COMMAND:
            if controller.skip():
                print_fn("Step skipped.")
            else:
                print_fn("This step cannot be skipped.")
            continue
        if command == FLAGS_COMMAND:
            if not controller.definition.use_flags_control:
                print_fn("Flags are fixed for this step.")
                continue
            controller.set_flags(raw.strip()[len(FLAGS_COMMAND) :].strip())
            _show_result(controller, print_fn)
            continue
        if command == CLEAR_COMMAND:
            raw = ""
        elif not raw:
            print_fn("Type a pattern.")
            continue
        if controller.definition.read_only or not controller.definition.interactive:
            print_fn("This step is read-only.")
            continue
        controller.set_pattern(raw)
        _show_result(controller, print_fn)


def _lesson_command(raw: str) -> str:
    """Return the lesson command named by an input line, or "" for a pattern."""
    if not raw.startswith(":"):
        return ""
    command = raw.strip().lower()
    name = command.split(maxsplit=1)[0]
    if name == FLAGS_COMMAND:
        return FLAGS_COMMAND
    if command in LESSON_COMMANDS:
        return command
    return ""


def _show_step(controller: ExerciseStepController, print_fn: PrintFn) -> None:
    """Print step title, prefilled input, and current result."""
    label = " (review)" if controller.review else ""
    print_fn(f"\nStep {controller.step_index + 1}/{len(controller.steps)}: {controller.title}{label}")
    if controller.definition.interactive:
        pattern = controller.state.pattern
        caret = controller.cursor_position
        print_fn(f"Input: /{pattern[:caret]}|{pattern[caret:]}/{controller.state.flags}")
    if controller.policy.skippable:
        print_fn("This step is graded by exact text; type :skip to continue.")
    _show_result(controller, print_fn)


def _show_result(controller: ExerciseStepController, print_fn: PrintFn) -> None:
    print_fn(controller.display_content)
    if controller.state.error_message:
        print_fn(controller.state.error_message)
    elif controller.definition.interactive:
        print_fn(STATUS_LABELS[controller.status])


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
