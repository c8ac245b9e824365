"""Line-level ICS handling: unfolding, property tokenizing and text unescaping.

This is deliberately a small strict parser rather than a full RFC 5545
implementation: it only needs to recover (name, parameters, value) triples
and the block structure around them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

logger = logging.getLogger(__name__)

BEGIN_VEVENT = "BEGIN:VEVENT"
END_VEVENT = "END:VEVENT"
BEGIN_VTIMEZONE = "BEGIN:VTIMEZONE"
END_VTIMEZONE = "END:VTIMEZONE"

ParamValue = Union[str, bool]

_ESCAPE_RE = re.compile(r"\\([nN\\,;])")
_UNESCAPED = {"n": "\n", "N": "\n", "\\": "\\", ",": ",", ";": ";"}


@dataclass(frozen=True)
class RawProperty:
    """One tokenized content line.

    Attributes:
        name: Upper-cased property name (e.g. ``DTSTART``)
        params: Upper-cased parameter keys mapped to their value, or True for
            a bare flag parameter
        value: Everything after the first unquoted colon, untouched
    """

    name: str
    value: str
    params: dict[str, ParamValue] = field(default_factory=dict)

    def param(self, key: str) -> Optional[str]:
        """Return a string parameter value, or None when absent or a bare flag."""
        value = self.params.get(key.upper())
        if isinstance(value, str):
            return value
        return None


def unfold_lines(text: str) -> list[str]:
    """Turn raw feed text into logical lines.

    ``\\r\\n`` and bare ``\\r`` are normalized to ``\\n``. A physical line that
    starts with a space or tab continues the previous logical line; its first
    whitespace character is dropped and the rest appended. Finished logical
    lines are trimmed and empty ones discarded. There is no line length limit.

    Args:
        text: Full feed document

    Returns:
        Ordered list of logical lines
    """
    if not text:
        return []

    physical = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    logical: list[str] = []
    current: Optional[str] = None

    for line in physical:
        if line.startswith((" ", "\t")):
            if current is not None:
                current += line[1:]
            # a continuation with nothing to continue is dropped
            continue
        if current is not None:
            logical.append(current)
        current = line

    if current is not None:
        logical.append(current)

    return [line.strip() for line in logical if line.strip()]


def _split_unquoted(text: str, sep: str, maxsplit: int = -1) -> list[str]:
    """Split on ``sep`` occurrences that are not inside double quotes."""
    parts: list[str] = []
    buf: list[str] = []
    in_quotes = False
    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
        if ch == sep and not in_quotes and (maxsplit < 0 or len(parts) < maxsplit):
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return parts


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


def tokenize_line(line: str) -> Optional[RawProperty]:
    """Split a logical line into name, parameters and value.

    The split happens at the first colon outside double quotes. The left side
    is ``NAME;KEY=VALUE;FLAG...``; a parameter without ``=`` is recorded as a
    boolean flag and quoted parameter values lose their quotes.

    Args:
        line: One logical (unfolded) line

    Returns:
        RawProperty, or None for malformed lines (no colon, empty name)
    """
    pieces = _split_unquoted(line, ":", maxsplit=1)
    if len(pieces) < 2:
        return None

    left, value = pieces
    segments = _split_unquoted(left, ";")
    name = segments[0].strip().upper()
    if not name:
        return None

    params: dict[str, ParamValue] = {}
    for segment in segments[1:]:
        if "=" in segment:
            key, raw = segment.split("=", 1)
            key = key.strip().upper()
            if key:
                params[key] = _strip_quotes(raw.strip())
        elif segment.strip():
            params[segment.strip().upper()] = True

    return RawProperty(name=name, value=value, params=params)


def unescape_text(value: Optional[str]) -> str:
    """Undo ICS TEXT escaping in a single left-to-right pass.

    ``\\n`` and ``\\N`` become newlines; ``\\\\``, ``\\,`` and ``\\;`` become the
    literal character. Any other backslash sequence is kept verbatim.
    """
    if not value:
        return ""
    return _ESCAPE_RE.sub(lambda m: _UNESCAPED[m.group(1)], value)
