"""Human-readable renderings of events and instants for the device sink."""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .selector import ScheduledEvent

LIST_BULLET = "• "


def _day(dt: datetime) -> str:
    # "Wed Jan 1"
    return f"{dt:%a %b} {dt.day}"


def _clock(dt: datetime) -> str:
    # "9:05 AM"
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt:%M %p}"


def format_day(dt: datetime) -> str:
    """``Wed Jan 1, 2025``"""
    return f"{_day(dt)}, {dt.year}"


def format_stamp(dt: datetime, tz: ZoneInfo) -> str:
    """``Wed Jan 1, 2025 9:30:00 AM EST`` in ``tz``."""
    local = dt.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{format_day(local)} {hour}:{local:%M:%S %p} {local.tzname()}"


def format_diagnostic_stamp(dt: datetime, tz: ZoneInfo) -> str:
    """``01-01 09:30:00``, the prefix of every diagnostic line."""
    return f"{dt.astimezone(tz):%m-%d %H:%M:%S}"


def format_event_line(
    scheduled: ScheduledEvent,
    tz: ZoneInfo,
    show_location: bool = True,
) -> str:
    """Render one event using its effective interval.

    Timed events read ``Wed Jan 1 9:00 AM – 10:00 AM Standup @ Room 1``; the
    end carries its own date when it falls on another local day. All-day
    events read ``Wed Jan 1, 2025 (All-day) Summary``.
    """
    event = scheduled.event
    start = scheduled.effective_start.astimezone(tz)
    end = scheduled.effective_end.astimezone(tz)
    location = f" @ {event.location}" if show_location and event.location else ""

    if event.is_all_day:
        return f"{format_day(start)} (All-day) {event.summary}{location}"

    if start.date() == end.date():
        end_text = _clock(end)
    else:
        end_text = f"{_day(end)} {_clock(end)}"
    return f"{_day(start)} {_clock(start)} – {end_text} {event.summary}{location}"


def format_list_line(scheduled: ScheduledEvent, tz: ZoneInfo, show_location: bool) -> str:
    return LIST_BULLET + format_event_line(scheduled, tz, show_location)


def safe_head(text: Optional[str], limit: int = 80) -> str:
    """First ``limit`` characters of a body with line breaks made visible."""
    if not text:
        return ""
    return text[:limit].replace("\n", "\\n").replace("\r", "\\r")
