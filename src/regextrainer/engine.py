"""Pattern engine adapter over Python's `re` module.

Exercises are written with JavaScript-style flag letters (`g`, `i`, `m`, `s`,
`u`, `y`), so this module maps them onto `re` flags and match strategies:

- `g` returns every match instead of the first one.
- `y` anchors each match at the end of the previous one.
- `u` is accepted for compatibility; `str` patterns are always unicode.

Patterns are compiled with `re.ASCII` so `\\d`, `\\w` and `\\b` keep their
JavaScript meaning, and are rewritten before compilation where the two
dialects disagree:

- named groups `(?<name>...)` and `\\k<name>` become `(?P<name>...)` and `(?P=name)`;
- `$` outside a class becomes `\\Z` unless `m` is set, since Python's `$` also
  matches before a trailing newline;
- the empty class `[]` never matches and `[^]` matches any character.

Remaining differences surface as different spans or compile errors: `\\s` and
`i` are ASCII-only here, and `\\u{...}` escapes are rejected.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .errors import PatternCompileError

logger = logging.getLogger(__name__)

Span = tuple[int, int]

FLAG_LETTERS = "gimsuy"
_RE_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


@dataclass(frozen=True)
class Matcher:
    """Compiled learner or reference pattern."""

    source: str
    flags: str
    regex: re.Pattern[str] | None
    global_search: bool
    sticky: bool

    def find_all(self, subject: str) -> list[Span]:
        """Return ordered, non-overlapping `(start, end)` spans found in subject."""
        if self.regex is None:
            return []
        if self.sticky:
            return self._find_sticky(self.regex, subject)
        if self.global_search:
            return [match.span() for match in self.regex.finditer(subject)]
        match = self.regex.search(subject)
        return [match.span()] if match is not None else []

    def _find_sticky(self, regex: re.Pattern[str], subject: str) -> list[Span]:
        spans: list[Span] = []
        pos = 0
        while pos <= len(subject):
            match = regex.match(subject, pos)
            if match is None:
                break
            spans.append(match.span())
            if not self.global_search:
                break
            pos = match.end() + 1 if match.end() == match.start() else match.end()
        return spans


def parse_flags(pattern: str, flags: str) -> tuple[int, bool, bool]:
    """Return `(re_flags, global_search, sticky)` for JavaScript-style flag letters."""
    re_flags = 0
    seen: set[str] = set()
    for letter in flags:
        if letter not in FLAG_LETTERS:
            raise PatternCompileError(pattern, flags, f"unknown flag '{letter}'")
        if letter in seen:
            raise PatternCompileError(pattern, flags, f"duplicate flag '{letter}'")
        seen.add(letter)
        re_flags |= _RE_FLAGS.get(letter, 0)
    return re_flags, "g" in seen, "y" in seen


def compile_pattern(pattern: str, flags: str = "") -> Matcher:
    """Compile a pattern and flag string into a matcher.

    Raises:
        PatternCompileError: when the flags are invalid or `re` rejects the pattern.
    """
    re_flags, global_search, sticky = parse_flags(pattern, flags)
    re_flags |= re.ASCII
    if not pattern:
        return Matcher(source=pattern, flags=flags, regex=None, global_search=global_search, sticky=sticky)
    try:
        regex = re.compile(translate_js_syntax(pattern, multiline="m" in flags), re_flags)
    except re.error as exc:
        logger.debug("Pattern /%s/%s failed to compile: %s", pattern, flags, exc)
        raise PatternCompileError(pattern, flags, exc.msg, exc.pos) from exc
    return Matcher(source=pattern, flags=flags, regex=regex, global_search=global_search, sticky=sticky)


def translate_js_syntax(pattern: str, multiline: bool = False) -> str:
    """Rewrite JavaScript-only syntax into the equivalent `re` spelling."""
    out: list[str] = []
    in_class = False
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if char == "\\" and index + 1 < length:
            if not in_class and pattern.startswith("k<", index + 1):
                end = pattern.find(">", index + 3)
                if end != -1:
                    out.append(f"(?P={pattern[index + 3 : end]})")
                    index = end + 1
                    continue
            out.append(pattern[index : index + 2])
            index += 2
            continue
        if in_class:
            if char == "]":
                in_class = False
        elif pattern.startswith("[]", index):
            out.append("(?!)")
            index += 2
            continue
        elif pattern.startswith("[^]", index):
            out.append(r"[\s\S]")
            index += 3
            continue
        elif char == "[":
            in_class = True
        elif char == "$" and not multiline:
            out.append(r"\Z")
            index += 1
            continue
        elif pattern.startswith("(?<", index) and index + 3 < length and pattern[index + 3] not in "=!":
            out.append("(?P<")
            index += 3
            continue
        out.append(char)
        index += 1
    return "".join(out)
