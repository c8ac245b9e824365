"""Feed-wide and per-property timezone resolution.

A feed can express time in three ways: UTC (``Z`` suffix), an explicit
``TZID`` parameter, or floating local time. Floating values and unknown
``TZID`` values fall back to the feed's own timezone hint, then to the local
timezone. This module produces the middle tier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from ..core.timezone_utils import get_zone
from .ics_lines import BEGIN_VTIMEZONE, END_VTIMEZONE, tokenize_line

logger = logging.getLogger(__name__)

# Upper bound on lines scanned inside a VTIMEZONE block for its TZID
VTIMEZONE_SCAN_LIMIT = 80

SOURCE_X_WR_TIMEZONE = "X-WR-TIMEZONE"
SOURCE_VTIMEZONE = "VTIMEZONE"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class FeedTimezoneHint:
    """Timezone applied to every floating value of one feed document.

    ``zone`` is None when the feed carries no usable hint, in which case the
    local timezone is used.
    """

    zone: Optional[ZoneInfo] = None
    source: str = SOURCE_NONE

    @property
    def tzid(self) -> Optional[str]:
        return self.zone.key if self.zone is not None else None


def resolve_tzid(tzid: Optional[str]) -> Optional[ZoneInfo]:
    """Resolve a TZID value to a zone, or None for unknown identifiers.

    Surrounding double quotes are removed first. Outlook-style Windows names
    and legacy aliases are accepted.
    """
    if not tzid:
        return None
    cleaned = tzid.replace('"', "").strip()
    zone = get_zone(cleaned)
    if zone is None:
        logger.debug("TZID %r is not a known timezone; falling through", tzid)
    return zone


def detect_feed_timezone(lines: list[str]) -> FeedTimezoneHint:
    """Derive the feed's fallback timezone from its unfolded lines.

    1. ``X-WR-TIMEZONE`` when it resolves to a real zone.
    2. The first ``TZID`` inside the first ``VTIMEZONE`` block (bounded scan).
    3. No hint: callers use the local timezone.

    Args:
        lines: Logical lines from unfold_lines()

    Returns:
        FeedTimezoneHint describing the zone and where it came from
    """
    for line in lines:
        prop = tokenize_line(line)
        if prop is None or prop.name != SOURCE_X_WR_TIMEZONE:
            continue
        zone = resolve_tzid(prop.value)
        if zone is not None:
            return FeedTimezoneHint(zone=zone, source=SOURCE_X_WR_TIMEZONE)
        logger.debug("Ignoring unresolvable X-WR-TIMEZONE %r", prop.value)
        break

    try:
        start = lines.index(BEGIN_VTIMEZONE)
    except ValueError:
        return FeedTimezoneHint()

    for line in lines[start : start + VTIMEZONE_SCAN_LIMIT]:
        if line == END_VTIMEZONE:
            break
        prop = tokenize_line(line)
        if prop is None or prop.name != "TZID":
            continue
        zone = resolve_tzid(prop.value)
        if zone is not None:
            return FeedTimezoneHint(zone=zone, source=SOURCE_VTIMEZONE)

    return FeedTimezoneHint()
