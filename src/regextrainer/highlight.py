"""Wrap matched spans of exercise content in highlight markers."""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from .errors import SpanContractError

logger = logging.getLogger(__name__)

Span = tuple[int, int]


def _identity(text: str) -> str:
    return text


@dataclass(frozen=True)
class Marker:
    """Open/close strings placed around matched regions."""

    open: str
    close: str
    line_break: str = "\n"
    escape: Callable[[str], str] = _identity
    unescape: Callable[[str], str] = _identity


def html_marker(tag: str = "mark", attributes: Mapping[str, str] | None = None) -> Marker:
    """Build an HTML tag marker; text segments are HTML-escaped."""
    rendered = "".join(
        f' {name}="{html.escape(value, quote=True).replace(chr(10), "&#10;")}"'
        for name, value in (attributes or {}).items()
    )
    return Marker(
        open=f"<{tag}{rendered}>",
        close=f"</{tag}>",
        line_break="<br />",
        escape=html.escape,
        unescape=html.unescape,
    )


def text_marker(open: str, close: str) -> Marker:
    """Build a plain-text marker (brackets, ANSI codes) with no escaping."""
    return Marker(open=open, close=close)


def wrap_spans(content: str, spans: Iterable[Span], marker: Marker) -> str:
    """Return content with each non-empty span wrapped in marker strings.

    Text outside and inside spans is escaped segment by segment, so escaping
    never shifts a region boundary. When no span is non-empty the content is
    returned unmodified.

    Raises:
        SpanContractError: spans overlap, are unordered, or fall outside content.
    """
    regions = _checked_regions(content, spans)
    if not regions:
        return content

    parts: list[str] = []
    cursor = 0
    for start, end in regions:
        parts.append(marker.escape(content[cursor:start]))
        parts.append(marker.open)
        parts.append(marker.escape(content[start:end]))
        parts.append(marker.close)
        cursor = end
    parts.append(marker.escape(content[cursor:]))
    return "".join(parts)


def render_markup(content: str, spans: Iterable[Span], marker: Marker) -> str:
    """Return content escaped for the marker's output format, with spans wrapped.

    Unlike `wrap_spans`, the result is escaped whether or not any span is
    non-empty, so it is always safe to embed in the marker's document format.
    """
    regions = _checked_regions(content, spans)
    if not regions:
        return marker.escape(content)
    return wrap_spans(content, regions, marker)


def render_line_breaks(text: str, marker: Marker) -> str:
    """Render newlines as the marker's line break, after highlighting."""
    if marker.line_break == "\n":
        return text
    return text.replace("\n", marker.line_break)


def strip_markers(text: str, marker: Marker) -> str:
    """Invert `wrap_spans`: remove highlight markers and undo escaping.

    `wrap_spans` only escapes when it wraps at least one region, so text
    without any marker is returned as is.
    """
    pattern = re.compile(f"{re.escape(marker.open)}|{re.escape(marker.close)}")
    if pattern.search(text) is None:
        return text
    return marker.unescape(pattern.sub("", text))


def _checked_regions(content: str, spans: Iterable[Span]) -> list[Span]:
    """Validate the span contract and drop zero-length spans."""
    regions: list[Span] = []
    previous_end = 0
    for start, end in spans:
        if start < previous_end or end < start or end > len(content):
            logger.error("Pattern engine returned invalid span (%d, %d) after offset %d", start, end, previous_end)
            raise SpanContractError(f"Span ({start}, {end}) overlaps, is unordered, or exceeds content length.")
        previous_end = end
        if end > start:
            regions.append((start, end))
    return regions
