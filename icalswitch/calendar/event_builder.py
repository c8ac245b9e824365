"""Assemble CalendarEvent records from the VEVENT blocks of a feed document.

parse_ics() is the entry point: it unfolds the document once, derives the
feed timezone hint from the same lines, then walks the lines collecting one
EventBlock per ``BEGIN:VEVENT``/``END:VEVENT`` pair. Each block is built
independently; a block that cannot be built is reported in
ParseResult.dropped and parsing carries on with the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from ..exceptions import MalformedEventError
from .datetime_decoder import decode_ics_datetime, is_all_day_value
from .ics_lines import (
    BEGIN_VEVENT,
    END_VEVENT,
    RawProperty,
    tokenize_line,
    unescape_text,
    unfold_lines,
)
from .models import CalendarEvent
from .timezone_resolver import FeedTimezoneHint, detect_feed_timezone, resolve_tzid

logger = logging.getLogger(__name__)

ALL_DAY_DEFAULT_DURATION = timedelta(hours=24)
TIMED_DEFAULT_DURATION = timedelta(minutes=30)

# Single-valued properties an event block keeps; anything else is ignored
_BLOCK_FIELDS = {
    "UID": "uid",
    "SUMMARY": "summary",
    "LOCATION": "location",
    "STATUS": "status",
    "TRANSP": "transp",
    "DTSTART": "dtstart",
    "DTEND": "dtend",
}


@dataclass
class EventBlock:
    """Properties collected between BEGIN:VEVENT and END:VEVENT.

    Later occurrences of a single-valued property replace earlier ones;
    ATTENDEE lines accumulate.
    """

    uid: Optional[RawProperty] = None
    summary: Optional[RawProperty] = None
    location: Optional[RawProperty] = None
    status: Optional[RawProperty] = None
    transp: Optional[RawProperty] = None
    dtstart: Optional[RawProperty] = None
    dtend: Optional[RawProperty] = None
    attendees: list[RawProperty] = field(default_factory=list)

    def add(self, prop: RawProperty) -> None:
        if prop.name == "ATTENDEE":
            self.attendees.append(prop)
            return
        attr = _BLOCK_FIELDS.get(prop.name)
        if attr is not None:
            setattr(self, attr, prop)

    def text(self, attr: str) -> str:
        prop = getattr(self, attr)
        return prop.value if prop is not None else ""


@dataclass(frozen=True)
class DroppedEvent:
    """A VEVENT block that did not produce an event."""

    reason: str
    raw_value: str
    tzid: Optional[str]
    uid: str
    summary: str

    def describe(self) -> str:
        return (
            f"Dropped event ({self.reason}): value='{self.raw_value}' "
            f"tzid={self.tzid or 'none'} uid='{self.uid}' summary='{self.summary}'"
        )


@dataclass
class ParseResult:
    """Outcome of parsing one feed document."""

    events: list[CalendarEvent] = field(default_factory=list)
    dropped: list[DroppedEvent] = field(default_factory=list)
    feed_timezone: FeedTimezoneHint = field(default_factory=FeedTimezoneHint)
    block_count: int = 0


def _tzid_of(prop: Optional[RawProperty]) -> Optional[str]:
    if prop is None:
        return None
    tzid = prop.param("TZID")
    return tzid.replace('"', "") if tzid else None


def build_event(
    block: EventBlock,
    calendar_tz: Optional[ZoneInfo],
    local_tz: ZoneInfo,
) -> CalendarEvent:
    """Build one event from a collected block.

    DTEND without a usable TZID of its own inherits the DTSTART zone before
    falling back to the feed hint and the local zone. A missing DTEND gives
    all-day events 24 hours and timed events 30 minutes.

    Args:
        block: Properties of one VEVENT
        calendar_tz: Feed timezone hint (None means local)
        local_tz: Local timezone

    Returns:
        The built CalendarEvent

    Raises:
        MalformedEventError: If the start (or a present end) cannot be
            decoded, or the end precedes the start
    """
    uid = block.text("uid")
    summary = unescape_text(block.text("summary"))
    location = unescape_text(block.text("location"))

    start_raw = block.text("dtstart").strip()
    start_tzid = _tzid_of(block.dtstart)
    if not start_raw:
        raise MalformedEventError("missing DTSTART", "", start_tzid, uid, summary)

    start_zone = resolve_tzid(start_tzid)
    start = decode_ics_datetime(start_raw, start_zone, calendar_tz, local_tz)
    if start is None:
        raise MalformedEventError("unparseable DTSTART", start_raw, start_tzid, uid, summary)

    all_day = is_all_day_value(start_raw)
    end_raw = block.text("dtend").strip()
    if end_raw:
        end_tzid = _tzid_of(block.dtend)
        end_zone = resolve_tzid(end_tzid) or start_zone
        end = decode_ics_datetime(end_raw, end_zone, calendar_tz, local_tz)
        if end is None:
            raise MalformedEventError(
                "unparseable DTEND", end_raw, end_tzid or start_tzid, uid, summary
            )
    else:
        end = start + (ALL_DAY_DEFAULT_DURATION if all_day else TIMED_DEFAULT_DURATION)

    if end < start:
        raise MalformedEventError("DTEND before DTSTART", end_raw, start_tzid, uid, summary)

    responses = tuple(
        partstat for partstat in (a.param("PARTSTAT") for a in block.attendees) if partstat
    )

    return CalendarEvent(
        uid=uid,
        summary=summary,
        location=location,
        status=block.text("status").strip(),
        transparency=block.text("transp").strip(),
        attendee_responses=responses,
        start=start,
        end=end,
        is_all_day=all_day,
    )


def parse_ics(text: str, local_tz: ZoneInfo) -> ParseResult:
    """Parse a feed document into events.

    Args:
        text: Full ICS document
        local_tz: Local timezone, the innermost fallback

    Returns:
        ParseResult with built events, dropped blocks and the feed timezone hint
    """
    lines = unfold_lines(text)
    result = ParseResult(feed_timezone=detect_feed_timezone(lines))
    calendar_tz = result.feed_timezone.zone

    # VTIMEZONE content and anything else outside a VEVENT is ignored
    current: Optional[EventBlock] = None
    # depth of sub-components (VALARM...) nested inside the current VEVENT
    nested = 0

    for line in lines:
        if line == BEGIN_VEVENT:
            current = EventBlock()
            nested = 0
            continue
        if line == END_VEVENT:
            if current is not None:
                result.block_count += 1
                _finish_block(current, calendar_tz, local_tz, result)
            current = None
            continue
        if current is None:
            continue

        if line.startswith("BEGIN:"):
            nested += 1
            continue
        if line.startswith("END:") and nested:
            nested -= 1
            continue
        if nested:
            continue

        prop = tokenize_line(line)
        if prop is not None:
            current.add(prop)

    logger.debug(
        "Parsed %d VEVENT blocks: %d events, %d dropped, feed tz=%s",
        result.block_count,
        len(result.events),
        len(result.dropped),
        result.feed_timezone.tzid or "none",
    )
    return result


def _finish_block(
    block: EventBlock,
    calendar_tz: Optional[ZoneInfo],
    local_tz: ZoneInfo,
    result: ParseResult,
) -> None:
    try:
        result.events.append(build_event(block, calendar_tz, local_tz))
    except MalformedEventError as e:
        dropped = DroppedEvent(
            reason=e.reason,
            raw_value=e.raw_value,
            tzid=e.tzid,
            uid=e.uid,
            summary=e.summary,
        )
        logger.warning(dropped.describe())
        result.dropped.append(dropped)
