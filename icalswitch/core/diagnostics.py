"""Bounded, timestamped diagnostic trace exposed as the ``raw_debug`` attribute."""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.formatting import format_diagnostic_stamp
from .timezone_utils import Clock, SystemClock

logger = logging.getLogger("icalswitch.diagnostics")

DEFAULT_MAX_CHARS = 6000
# When trimming leaves a partial first line shorter than this, drop it
_PARTIAL_LINE_LIMIT = 200


class DiagnosticBuffer:
    """Append-only text buffer capped at ``max_chars``; oldest text is trimmed first.

    Each line is prefixed with ``MM-dd HH:mm:ss`` in the local timezone and
    mirrored to the ``icalswitch.diagnostics`` logger at DEBUG. A disabled
    buffer records nothing.
    """

    def __init__(
        self,
        max_chars: int = DEFAULT_MAX_CHARS,
        enabled: bool = True,
        clock: Optional[Clock] = None,
    ) -> None:
        self.max_chars = max(0, max_chars)
        self.enabled = enabled
        self._clock = clock or SystemClock()
        self._buf = ""

    @property
    def text(self) -> str:
        return self._buf

    def add(self, message: str) -> None:
        if not self.enabled:
            return

        stamp = format_diagnostic_stamp(self._clock.now(), self._clock.local_timezone())
        line = f"{stamp} {message}"
        logger.debug(line)

        buf = f"{self._buf}\n{line}" if self._buf else line
        if len(buf) > self.max_chars:
            buf = buf[len(buf) - self.max_chars :]
            nl = buf.find("\n")
            if 0 < nl < _PARTIAL_LINE_LIMIT:
                buf = buf[nl + 1 :]
        self._buf = buf

    def clear(self) -> None:
        self._buf = ""
