"""Decode ICS DATE / DATE-TIME values into absolute instants.

Three encodings are handled:

- ``20250101T140000Z`` - UTC, never affected by any timezone hint
- ``20250101`` - all-day date, midnight in the resolved zone
- ``20250101T090000`` - local time in the resolved zone

The zone for the last two is the first available of: the property's own
TZID, the feed timezone hint, the local timezone. Seconds are optional in
both time forms.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})?(Z?)$")


def is_all_day_value(raw_value: Optional[str]) -> bool:
    """True when the value is a bare 8-character date with no time part."""
    if not raw_value:
        return False
    value = raw_value.strip()
    return "T" not in value.upper() and len(value) == 8


def pick_zone(
    tz_context: Optional[ZoneInfo],
    calendar_tz: Optional[ZoneInfo],
    local_tz: ZoneInfo,
) -> ZoneInfo:
    """Apply the three-tier fallback: explicit TZID, feed hint, local zone."""
    return tz_context or calendar_tz or local_tz


def decode_ics_datetime(
    raw_value: Optional[str],
    tz_context: Optional[ZoneInfo],
    calendar_tz: Optional[ZoneInfo],
    local_tz: ZoneInfo,
) -> Optional[datetime]:
    """Decode a DTSTART/DTEND value.

    Args:
        raw_value: Property value as found in the feed
        tz_context: Zone from the property's TZID parameter, if it resolved
        calendar_tz: Feed-wide timezone hint, if any
        local_tz: Local timezone, the last fallback

    Returns:
        Aware UTC datetime, or None when the value is not a valid date or
        date-time. Callers decide what to do with undecodable values.
    """
    if not raw_value:
        return None

    value = raw_value.strip().upper()

    date_match = _DATE_RE.match(value)
    if date_match:
        year, month, day = (int(part) for part in date_match.groups())
        zone = pick_zone(tz_context, calendar_tz, local_tz)
        try:
            return datetime(year, month, day, tzinfo=zone).astimezone(UTC)
        except ValueError:
            logger.debug("Invalid calendar date %r", raw_value)
            return None

    dt_match = _DATETIME_RE.match(value)
    if not dt_match:
        logger.debug("Unrecognized date-time format %r", raw_value)
        return None

    year, month, day, hour, minute = (int(part) for part in dt_match.groups()[:5])
    second = int(dt_match.group(6) or 0)
    is_utc = dt_match.group(7) == "Z"

    zone = UTC if is_utc else pick_zone(tz_context, calendar_tz, local_tz)
    try:
        local = datetime(year, month, day, hour, minute, second, tzinfo=zone)
    except ValueError:
        logger.debug("Invalid date-time components in %r", raw_value)
        return None
    return local.astimezone(UTC)
