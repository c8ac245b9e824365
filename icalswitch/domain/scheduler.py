"""Timing decisions for the two run timers.

Nothing here touches the event loop: the functions return what the driver
should do and the driver arms or cancels its timers accordingly. The
regular cadence refetches the feed periodically; the transition timer fires
at the next boundary of the busy signal and is never throttled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .selector import Selection

logger = logging.getLogger(__name__)

MIN_REGULAR_INTERVAL_SECONDS = 30
MIN_POLL_GAP_SECONDS = 10
MIN_THROTTLE_DELAY_SECONDS = 2.0
MIN_TRANSITION_DELAY_SECONDS = 2.0
INITIAL_RUN_DELAY_SECONDS = 2.0
TRANSITION_TOLERANCE = timedelta(milliseconds=1500)

REASON_ACTIVE_END = "active-end"
REASON_NEXT_START = "next-start"


class RunTrigger(str, Enum):
    """What caused a pipeline run."""

    INITIAL = "initial"
    REGULAR = "regular"
    TRANSITION = "transition"
    MANUAL = "manual"


@dataclass
class SchedulerState:
    """Scheduling memory carried from one run to the next."""

    last_poll_at: Optional[datetime] = None
    next_transition_at: Optional[datetime] = None

    def reset(self) -> None:
        self.last_poll_at = None
        self.next_transition_at = None


def regular_interval_seconds(poll_seconds: int) -> int:
    """Period of the regular cadence timer."""
    return max(MIN_REGULAR_INTERVAL_SECONDS, poll_seconds)


def min_poll_gap_seconds(poll_seconds: int) -> int:
    return max(MIN_POLL_GAP_SECONDS, poll_seconds)


def throttle_delay(
    state: SchedulerState,
    trigger: RunTrigger,
    now: datetime,
    poll_seconds: int,
) -> Optional[float]:
    """Decide whether a run must back off.

    Only regular-cadence runs are throttled. A regular run arriving less than
    the minimum gap after the previous run is postponed until the gap has
    elapsed (never sooner than two seconds).

    Returns:
        Seconds to wait before retrying, or None to run now
    """
    if trigger is not RunTrigger.REGULAR or state.last_poll_at is None:
        return None

    gap = timedelta(seconds=min_poll_gap_seconds(poll_seconds))
    elapsed = now - state.last_poll_at
    if elapsed >= gap:
        return None
    remaining = (gap - elapsed).total_seconds()
    return max(MIN_THROTTLE_DELAY_SECONDS, remaining)


class TransitionAction(str, Enum):
    ARM = "arm"
    KEEP = "keep"
    CLEAR = "clear"


@dataclass(frozen=True)
class TransitionPlan:
    """Outcome of planning the transition timer after a run."""

    action: TransitionAction
    target: Optional[datetime] = None
    reason: Optional[str] = None
    delay_seconds: float = 0.0


def transition_target(selection: Selection) -> tuple[Optional[datetime], Optional[str]]:
    """Next instant at which the signal may flip, with its reason tag."""
    if selection.governing is not None:
        return selection.governing.effective_end, REASON_ACTIVE_END
    if selection.next_event is not None:
        return selection.next_event.effective_start, REASON_NEXT_START
    return None, None


def plan_transition(selection: Selection, state: SchedulerState, now: datetime) -> TransitionPlan:
    """Plan the transition timer and update ``state.next_transition_at``.

    A target within the tolerance of the pending one leaves the existing
    timer alone. Otherwise the timer is armed for ``max(2 s, target - now)``.
    With no target at all the pending transition is cleared.
    """
    target, reason = transition_target(selection)

    if target is None:
        state.next_transition_at = None
        return TransitionPlan(action=TransitionAction.CLEAR)

    pending = state.next_transition_at
    if pending is not None and abs(pending - target) < TRANSITION_TOLERANCE:
        remaining = max(MIN_TRANSITION_DELAY_SECONDS, (pending - now).total_seconds())
        return TransitionPlan(
            action=TransitionAction.KEEP, target=pending, reason=reason, delay_seconds=remaining
        )

    delay = max(MIN_TRANSITION_DELAY_SECONDS, (target - now).total_seconds())
    state.next_transition_at = target
    return TransitionPlan(
        action=TransitionAction.ARM, target=target, reason=reason, delay_seconds=delay
    )
