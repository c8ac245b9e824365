"""Timezone name normalization, local timezone detection and the run clock."""

from __future__ import annotations

import datetime
import logging
import os
import time
import zoneinfo
from functools import lru_cache
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

# Used when the host timezone cannot be detected and none is configured
DEFAULT_LOCAL_TIMEZONE = "America/Los_Angeles"

# Environment variable that freezes the clock (ISO 8601) for diagnostics/tests
TEST_TIME_ENV = "ICALSWITCH_TEST_TIME"

# Abbreviations reported by time.tzname mapped to IANA identifiers
TZ_ABBREV_MAP: dict[str, str] = {
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "UTC": "UTC",
    "GMT": "UTC",
}

# Windows timezone names found in Outlook / Exchange feeds
# https://docs.microsoft.com/en-us/windows-hardware/manufacture/desktop/default-time-zones
WINDOWS_TZ_MAP: dict[str, str] = {
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "US Mountain Standard Time": "America/Phoenix",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "US Eastern Standard Time": "America/Indiana/Indianapolis",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "Atlantic Standard Time": "America/Halifax",
    "Newfoundland Standard Time": "America/St_Johns",
    "GMT Standard Time": "Europe/London",
    "Greenwich Standard Time": "Atlantic/Reykjavik",
    "W. Europe Standard Time": "Europe/Berlin",
    "Romance Standard Time": "Europe/Paris",
    "Central Europe Standard Time": "Europe/Budapest",
    "Central European Standard Time": "Europe/Warsaw",
    "E. Europe Standard Time": "Europe/Chisinau",
    "FLE Standard Time": "Europe/Kiev",
    "GTB Standard Time": "Europe/Bucharest",
    "Russian Standard Time": "Europe/Moscow",
    "Israel Standard Time": "Asia/Jerusalem",
    "Arabian Standard Time": "Asia/Dubai",
    "India Standard Time": "Asia/Kolkata",
    "China Standard Time": "Asia/Shanghai",
    "Singapore Standard Time": "Asia/Singapore",
    "Tokyo Standard Time": "Asia/Tokyo",
    "Korea Standard Time": "Asia/Seoul",
    "AUS Eastern Standard Time": "Australia/Sydney",
    "E. Australia Standard Time": "Australia/Brisbane",
    "W. Australia Standard Time": "Australia/Perth",
    "New Zealand Standard Time": "Pacific/Auckland",
    "E. South America Standard Time": "America/Sao_Paulo",
    "South Africa Standard Time": "Africa/Johannesburg",
    "UTC": "UTC",
}

# Obsolete or informal names still seen in older feeds
TZ_ALIAS_MAP: dict[str, str] = {
    "US/Pacific": "America/Los_Angeles",
    "US/Mountain": "America/Denver",
    "US/Arizona": "America/Phoenix",
    "US/Central": "America/Chicago",
    "US/Eastern": "America/New_York",
    "US/Alaska": "America/Anchorage",
    "US/Hawaii": "Pacific/Honolulu",
    "GMT": "UTC",
    "Etc/UTC": "UTC",
    "Etc/GMT": "UTC",
    "Z": "UTC",
    "Zulu": "UTC",
    "PST8PDT": "America/Los_Angeles",
    "MST7MDT": "America/Denver",
    "CST6CDT": "America/Chicago",
    "EST5EDT": "America/New_York",
    "Asia/Rangoon": "Asia/Yangon",
    "America/Godthab": "America/Nuuk",
}

# Rounded UTC offset (hours) to a representative zone, last-resort detection
OFFSET_TO_TZ_MAP: dict[int, str] = {
    -8: "America/Los_Angeles",
    -7: "America/Denver",
    -6: "America/Chicago",
    -5: "America/New_York",
    -4: "America/New_York",
    0: "UTC",
}


@lru_cache(maxsize=128)
def normalize_timezone_name(tz_str: Optional[str]) -> Optional[str]:
    """Normalize a timezone string to a canonical IANA identifier.

    Resolution order: Windows name, alias table, the name itself. Each
    candidate is validated with zoneinfo.

    Args:
        tz_str: Timezone string (Windows name, alias, or IANA identifier)

    Returns:
        IANA identifier, or None if the name cannot be resolved

    Examples:
        >>> normalize_timezone_name("Pacific Standard Time")
        'America/Los_Angeles'
        >>> normalize_timezone_name("US/Eastern")
        'America/New_York'
        >>> normalize_timezone_name("Bogus/Zone") is None
        True
    """
    if not tz_str:
        return None
    name = tz_str.strip()
    if not name:
        return None

    candidate = WINDOWS_TZ_MAP.get(name) or TZ_ALIAS_MAP.get(name) or name
    try:
        zoneinfo.ZoneInfo(candidate)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError):
        logger.debug("Unknown timezone identifier %r", tz_str)
        return None
    return candidate


def get_zone(tz_str: Optional[str]) -> Optional[zoneinfo.ZoneInfo]:
    """Return a ZoneInfo for a timezone string, or None when it is unknown."""
    iana = normalize_timezone_name(tz_str)
    if iana is None:
        return None
    return zoneinfo.ZoneInfo(iana)


def detect_local_timezone() -> str:
    """Detect the host timezone as an IANA identifier.

    Checks the TZ environment variable, then the /etc/localtime link, then
    the time.tzname abbreviation, then the current UTC offset. Falls back to
    DEFAULT_LOCAL_TIMEZONE.
    """
    tz_env = os.environ.get("TZ", "").lstrip(":")
    if tz_env and normalize_timezone_name(tz_env):
        return normalize_timezone_name(tz_env)  # type: ignore[return-value]

    try:
        target = os.path.realpath("/etc/localtime")
        marker = "zoneinfo/"
        if marker in target:
            name = target.split(marker, 1)[1]
            if normalize_timezone_name(name):
                return normalize_timezone_name(name)  # type: ignore[return-value]
    except OSError:
        logger.debug("Could not inspect /etc/localtime", exc_info=True)

    abbrev = time.tzname[time.daylight] if time.daylight else time.tzname[0]
    if abbrev in TZ_ABBREV_MAP:
        return TZ_ABBREV_MAP[abbrev]

    offset = datetime.datetime.now().astimezone().utcoffset()
    if offset is not None:
        offset_hours = round(offset.total_seconds() / 3600)
        if offset_hours in OFFSET_TO_TZ_MAP:
            return OFFSET_TO_TZ_MAP[offset_hours]
        logger.warning(
            "Could not detect local timezone, offset=%dh, falling back to %s",
            offset_hours,
            DEFAULT_LOCAL_TIMEZONE,
        )
    return DEFAULT_LOCAL_TIMEZONE


def now_utc() -> datetime.datetime:
    """Return the current UTC time, honouring the ICALSWITCH_TEST_TIME override.

    The override is an ISO 8601 string (e.g. "2025-01-01T09:30:00-05:00");
    naive values are taken as UTC.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            from dateutil import parser as date_parser

            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is None:
                return dt.replace(tzinfo=datetime.UTC)
            return dt.astimezone(datetime.UTC)
        except ValueError as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now(datetime.UTC)


class Clock(Protocol):
    """Time source consumed by the driver and the pipeline."""

    def now(self) -> datetime.datetime:
        """Current instant as an aware UTC datetime."""
        ...

    def local_timezone(self) -> zoneinfo.ZoneInfo:
        """Host timezone, the innermost fallback tier."""
        ...


class SystemClock:
    """Wall clock with a configurable or detected local timezone."""

    def __init__(self, configured_timezone: Optional[str] = None) -> None:
        zone = get_zone(configured_timezone) if configured_timezone else None
        if configured_timezone and zone is None:
            logger.warning(
                "Configured local timezone %r is unknown; detecting host timezone",
                configured_timezone,
            )
        self._zone = zone or zoneinfo.ZoneInfo(detect_local_timezone())

    def now(self) -> datetime.datetime:
        return now_utc()

    def local_timezone(self) -> zoneinfo.ZoneInfo:
        return self._zone
