"""Tests for window restriction and active/next selection."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from icalswitch.calendar.models import CalendarEvent
from icalswitch.domain.eligibility import REASON_TRANSPARENT, EligibilityConfig
from icalswitch.domain.selector import WindowConfig, select_events

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 1, 14, 30, tzinfo=UTC)


def ev(uid: str, start_min: int, end_min: int, **extra: Any) -> CalendarEvent:
    """Event relative to NOW in minutes."""
    return CalendarEvent(
        uid=uid,
        summary=extra.pop("summary", uid),
        start=NOW + timedelta(minutes=start_min),
        end=NOW + timedelta(minutes=end_min),
        **extra,
    )


class TestActiveAndNext:
    def test_select_when_event_contains_now_then_active(self) -> None:
        selection = select_events([ev("a", -30, 30)], NOW, WindowConfig(), EligibilityConfig())
        assert selection.signal is True
        assert selection.governing is not None
        assert selection.governing.event.uid == "a"
        assert selection.next_event is None

    def test_select_when_event_ends_now_then_not_active(self) -> None:
        selection = select_events([ev("a", -30, 0)], NOW, WindowConfig(), EligibilityConfig())
        assert selection.signal is False
        assert [e.event.uid for e in selection.events] == ["a"]

    def test_select_when_event_starts_now_then_active_not_next(self) -> None:
        selection = select_events([ev("a", 0, 30)], NOW, WindowConfig(), EligibilityConfig())
        assert selection.signal is True
        assert selection.next_event is None

    def test_governing_when_two_active_then_earliest_end(self) -> None:
        events = [ev("long", -20, 30), ev("short", -10, 10)]
        selection = select_events(events, NOW, WindowConfig(), EligibilityConfig())
        assert selection.governing is not None
        assert selection.governing.event.uid == "short"
        assert len(selection.active) == 2

    def test_governing_when_equal_ends_then_first_in_sorted_order(self) -> None:
        events = [ev("later-start", -5, 10), ev("earlier-start", -15, 10)]
        selection = select_events(events, NOW, WindowConfig(), EligibilityConfig())
        assert selection.governing is not None
        assert selection.governing.event.uid == "earlier-start"

    def test_next_when_future_events_then_first_by_start(self) -> None:
        events = [ev("c", 120, 150), ev("b", 60, 90), ev("past", -90, -60)]
        selection = select_events(events, NOW, WindowConfig(), EligibilityConfig())
        assert selection.next_event is not None
        assert selection.next_event.event.uid == "b"
        assert [e.event.uid for e in selection.events] == ["past", "b", "c"]

    def test_sort_when_equal_starts_then_feed_order_kept(self) -> None:
        events = [ev("first", 60, 90), ev("second", 60, 75)]
        selection = select_events(events, NOW, WindowConfig(), EligibilityConfig())
        assert [e.event.uid for e in selection.events] == ["first", "second"]


class TestWindowAndOffsets:
    def test_window_when_event_outside_then_excluded(self) -> None:
        window = WindowConfig(include_past_hours=1, horizon_days=1)
        events = [
            ev("old", -180, -120),
            ev("recent", -90, -59),
            ev("far", 60 * 25, 60 * 26),
            ev("edge", 60 * 24, 60 * 24 + 30),
        ]
        selection = select_events(events, NOW, window, EligibilityConfig())
        assert [e.event.uid for e in selection.events] == ["recent", "edge"]

    def test_offsets_when_start_offset_negative_then_active_early(self) -> None:
        config = EligibilityConfig(start_offset_minutes=-10)
        selection = select_events([ev("a", 5, 35)], NOW, WindowConfig(), config)
        assert selection.signal is True
        assert selection.governing is not None
        assert selection.governing.effective_start == NOW - timedelta(minutes=5)

    def test_offsets_when_interval_inverted_then_discarded_everywhere(self) -> None:
        config = EligibilityConfig(start_offset_minutes=30, end_offset_minutes=-30)
        selection = select_events([ev("a", -10, 20)], NOW, WindowConfig(), config)
        assert selection.events == []
        assert selection.active == []
        assert selection.next_event is None
        assert selection.degenerate == 1
        assert selection.upcoming(10) == []

    def test_cap_when_more_than_max_then_earliest_kept(self) -> None:
        events = [ev(f"e{i}", 10 * i + 10, 10 * i + 15) for i in range(5)]
        selection = select_events(events, NOW, WindowConfig(max_events=3), EligibilityConfig())
        assert [e.event.uid for e in selection.events] == ["e0", "e1", "e2"]


class TestEligibilityIntegration:
    def test_transparent_event_containing_now_then_signal_false(self) -> None:
        events = [ev("free", -10, 10, transparency="TRANSPARENT")]
        selection = select_events(events, NOW, WindowConfig(), EligibilityConfig())
        assert selection.signal is False
        assert selection.excluded == {REASON_TRANSPARENT: 1}

    def test_upcoming_when_limit_then_unfinished_events_only(self) -> None:
        events = [ev("past", -60, -30), ev("now", -5, 5), ev("soon", 10, 20), ev("later", 30, 40)]
        selection = select_events(events, NOW, WindowConfig(), EligibilityConfig())
        assert [e.event.uid for e in selection.upcoming(2)] == ["now", "soon"]
        assert selection.upcoming(0) == []
