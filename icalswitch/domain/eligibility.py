"""Rules deciding whether a calendar event may drive the busy signal.

Every check is a pure function of one event and an immutable
EligibilityConfig snapshot, so events can be filtered in any order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..calendar.models import CalendarEvent, EventStatus

logger = logging.getLogger(__name__)

REASON_CANCELLED = "cancelled"
REASON_ALL_DAY = "all-day"
REASON_TRANSPARENT = "transparent"
REASON_TENTATIVE = "tentative"
REASON_DECLINED = "declined"
REASON_NO_INCLUDE_MATCH = "no-include-keyword"
REASON_EXCLUDED_KEYWORD = "exclude-keyword"


def parse_keywords(raw: Optional[str]) -> tuple[str, ...]:
    """Split a comma-separated keyword list into lowercase, non-blank entries."""
    if not raw:
        return ()
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class EligibilityConfig:
    """Immutable per-run snapshot of the filter toggles, keywords and offsets."""

    trigger_busy_only: bool = True
    exclude_tentative: bool = False
    exclude_declined_if_present: bool = False
    trigger_all_day: bool = False
    include_keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    start_offset_minutes: int = 0
    end_offset_minutes: int = 0


def _haystack(event: CalendarEvent) -> str:
    return f"{event.summary} {event.location}".lower()


def ineligibility_reason(event: CalendarEvent, config: EligibilityConfig) -> Optional[str]:
    """Return why an event is not eligible, or None when it is.

    Checks run in a fixed order and the first failing one is reported:
    cancelled, all-day, transparent, tentative, declined, include keywords,
    exclude keywords.
    """
    status = event.event_status
    if status is EventStatus.CANCELLED:
        return REASON_CANCELLED
    if not config.trigger_all_day and event.is_all_day:
        return REASON_ALL_DAY
    if config.trigger_busy_only and event.is_transparent:
        return REASON_TRANSPARENT
    if config.exclude_tentative and status is EventStatus.TENTATIVE:
        return REASON_TENTATIVE
    if config.exclude_declined_if_present and event.has_declined:
        return REASON_DECLINED

    if config.include_keywords or config.exclude_keywords:
        haystack = _haystack(event)
        if config.include_keywords and not any(k in haystack for k in config.include_keywords):
            return REASON_NO_INCLUDE_MATCH
        if any(k in haystack for k in config.exclude_keywords):
            return REASON_EXCLUDED_KEYWORD

    return None


def is_eligible(event: CalendarEvent, config: EligibilityConfig) -> bool:
    return ineligibility_reason(event, config) is None
