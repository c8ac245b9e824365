"""Shared fixtures for icalswitch tests."""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import httpx
import pytest

from icalswitch.config_loader import SwitchConfig
from icalswitch.core.fetcher import FeedFetcher

NEW_YORK = ZoneInfo("America/New_York")


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Driver and API tests across modules")


class FixedClock:
    """Clock with a settable instant and a fixed local timezone."""

    def __init__(self, now: datetime, tz: ZoneInfo = NEW_YORK) -> None:
        self._now = now.astimezone(UTC)
        self._tz = tz

    def now(self) -> datetime:
        return self._now

    def local_timezone(self) -> ZoneInfo:
        return self._tz

    def advance(self, **kwargs: float) -> None:
        self._now += timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self._now = now.astimezone(UTC)


@pytest.fixture
def ny() -> ZoneInfo:
    """America/New_York, the local timezone used by most tests."""
    return NEW_YORK


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2025-01-01 09:30 New York time."""
    return FixedClock(datetime(2025, 1, 1, 9, 30, tzinfo=NEW_YORK))


@pytest.fixture
def make_ics() -> Callable[..., str]:
    """Build an ICS document from VEVENT property lists.

    Usage:
        make_ics(["SUMMARY:A", "DTSTART:20250101T140000Z"], header=["X-WR-TIMEZONE:UTC"])
    """

    def _make(*events: list[str], header: Optional[list[str]] = None) -> str:
        lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//icalswitch tests//EN"]
        lines.extend(header or [])
        for props in events:
            lines.append("BEGIN:VEVENT")
            lines.extend(props)
            lines.append("END:VEVENT")
        lines.append("END:VCALENDAR")
        return "\r\n".join(lines) + "\r\n"

    return _make


@pytest.fixture
def standup_ics(make_ics: Callable[..., str]) -> str:
    """One opaque Standup 09:00-10:00 New York on 2025-01-01."""
    return make_ics(
        [
            "UID:standup-1",
            "SUMMARY:Standup",
            "LOCATION:Room 1",
            "DTSTART;TZID=America/New_York:20250101T090000",
            "DTEND;TZID=America/New_York:20250101T100000",
            "TRANSP:OPAQUE",
        ]
    )


@pytest.fixture
def base_config() -> SwitchConfig:
    """Config pointing at a fake feed URL with default filters."""
    return SwitchConfig(ics_url="https://calendar.example.com/feed.ics")


class FeedServer:
    """Mutable fake feed served through httpx.MockTransport."""

    def __init__(self, body: str = "", status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code
        self.error: Optional[Exception] = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)

    def fetcher(self) -> FeedFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return FeedFetcher(timeout_seconds=5, client=client)


@pytest.fixture
def feed_server() -> FeedServer:
    return FeedServer()


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep ICALSWITCH_* overrides from leaking between tests."""
    monkeypatch.delenv("ICALSWITCH_TEST_TIME", raising=False)
    monkeypatch.delenv("ICALSWITCH_DEBUG", raising=False)
    monkeypatch.delenv("ICALSWITCH_LOG_LEVEL", raising=False)
    yield
