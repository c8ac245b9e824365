"""Window restriction and active/next event selection."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..calendar.models import CalendarEvent
from .eligibility import EligibilityConfig, ineligibility_reason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowConfig:
    """How far back and ahead to look, and how many events to keep."""

    include_past_hours: int = 6
    horizon_days: int = 3
    max_events: int = 80

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        return (
            now - timedelta(hours=self.include_past_hours),
            now + timedelta(days=self.horizon_days),
        )


@dataclass(frozen=True)
class ScheduledEvent:
    """A CalendarEvent paired with its offset-adjusted interval."""

    event: CalendarEvent
    effective_start: datetime
    effective_end: datetime

    @classmethod
    def from_event(cls, event: CalendarEvent, config: EligibilityConfig) -> ScheduledEvent:
        return cls(
            event=event,
            effective_start=event.start + timedelta(minutes=config.start_offset_minutes),
            effective_end=event.end + timedelta(minutes=config.end_offset_minutes),
        )

    @property
    def is_degenerate(self) -> bool:
        return self.effective_end < self.effective_start

    def is_active(self, now: datetime) -> bool:
        return self.effective_start <= now < self.effective_end

    @property
    def summary(self) -> str:
        return self.event.summary


@dataclass
class Selection:
    """Result of one selection pass.

    Attributes:
        now: Instant the selection was made for
        events: Eligible events inside the window, sorted by effective start
            and capped
        active: Members of ``events`` that contain ``now``
        governing: Active event ending soonest, or None
        next_event: First event starting after ``now``, or None
        excluded: Count of in-window events per ineligibility reason
        degenerate: Events dropped because offsets inverted their interval
    """

    now: datetime
    events: list[ScheduledEvent] = field(default_factory=list)
    active: list[ScheduledEvent] = field(default_factory=list)
    governing: Optional[ScheduledEvent] = None
    next_event: Optional[ScheduledEvent] = None
    excluded: dict[str, int] = field(default_factory=dict)
    degenerate: int = 0

    @property
    def signal(self) -> bool:
        return bool(self.active)

    def upcoming(self, limit: int) -> list[ScheduledEvent]:
        """Events not yet over, in start order, at most ``limit`` of them."""
        if limit <= 0:
            return []
        return [e for e in self.events if e.effective_end >= self.now][:limit]


def select_events(
    events: list[CalendarEvent],
    now: datetime,
    window: WindowConfig,
    eligibility: EligibilityConfig,
) -> Selection:
    """Restrict events to the window, filter them and pick active/next.

    Args:
        events: Parsed events of one feed document
        now: Current instant (aware)
        window: Window bounds and cap
        eligibility: Filter snapshot, including the offsets

    Returns:
        Selection for ``now``
    """
    window_start, window_end = window.bounds(now)
    selection = Selection(now=now)
    reasons: Counter[str] = Counter()
    kept: list[ScheduledEvent] = []

    for event in events:
        scheduled = ScheduledEvent.from_event(event, eligibility)
        if scheduled.is_degenerate:
            selection.degenerate += 1
            continue
        if scheduled.effective_end < window_start or scheduled.effective_start > window_end:
            continue
        reason = ineligibility_reason(event, eligibility)
        if reason is not None:
            reasons[reason] += 1
            continue
        kept.append(scheduled)

    # sorted() is stable: equal starts keep feed order
    kept = sorted(kept, key=lambda e: e.effective_start)
    if len(kept) > window.max_events:
        logger.debug("Capping %d eligible events to %d", len(kept), window.max_events)
        kept = kept[: window.max_events]

    selection.events = kept
    selection.excluded = dict(reasons)
    selection.active = [e for e in kept if e.is_active(now)]

    for candidate in selection.active:
        if selection.governing is None or candidate.effective_end < selection.governing.effective_end:
            selection.governing = candidate

    selection.next_event = next((e for e in kept if e.effective_start > now), None)

    logger.debug(
        "Selection at %s: %d eligible, %d active, governing=%r, next=%r",
        now.isoformat(),
        len(kept),
        len(selection.active),
        selection.governing.summary if selection.governing else None,
        selection.next_event.summary if selection.next_event else None,
    )
    return selection
