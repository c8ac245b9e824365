"""Tests for the run pipeline and its stages."""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

import pytest

from icalswitch.core.diagnostics import DiagnosticBuffer
from icalswitch.core.fetcher import FeedResponse
from icalswitch.domain.pipeline import (
    EventProcessingPipeline,
    ProcessingContext,
    ProcessingResult,
)
from icalswitch.domain.pipeline_stages import (
    FetchStage,
    ParseStage,
    SelectionStage,
    ValidationStage,
    create_run_pipeline,
)
from icalswitch.exceptions import ConfigError, InvalidFeedError, TransportError

pytestmark = pytest.mark.unit

NY = ZoneInfo("America/New_York")
NOW = datetime(2025, 1, 1, 9, 30, tzinfo=NY)
URL = "https://calendar.example.com/feed.ics"


def _context(clock, **overrides) -> ProcessingContext:
    fields = {
        "now": NOW,
        "local_tz": NY,
        "source_url": URL,
        "diagnostics": DiagnosticBuffer(clock=clock),
    }
    fields.update(overrides)
    return ProcessingContext(**fields)


class _RecordingStage:
    def __init__(self, label: str, calls: list[str], fail: Exception | None = None) -> None:
        self.label = label
        self.calls = calls
        self.fail = fail

    @property
    def name(self) -> str:
        return self.label

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        self.calls.append(self.label)
        if self.fail is not None:
            raise self.fail
        result = ProcessingResult(stage_name=self.label)
        result.metadata[self.label] = True
        return result


class TestProcessingResult:
    """Test ProcessingResult dataclass."""

    def test_add_warning_keeps_success(self) -> None:
        result = ProcessingResult(stage_name="TestStage")
        result.add_warning("Test warning")
        assert result.success is True
        assert result.warnings == ["Test warning"]

    def test_add_error_marks_as_failed(self) -> None:
        result = ProcessingResult(stage_name="TestStage")
        result.add_error("Test error")
        assert result.success is False
        assert result.errors == ["Test error"]


class TestEventProcessingPipeline:
    @pytest.mark.asyncio
    async def test_process_when_all_succeed_then_metadata_merged(self, clock) -> None:
        calls: list[str] = []
        pipeline = (
            EventProcessingPipeline()
            .add_stage(_RecordingStage("a", calls))
            .add_stage(_RecordingStage("b", calls))
        )

        result = await pipeline.process(_context(clock))

        assert result.success is True
        assert result.error is None
        assert calls == ["a", "b"]
        assert result.metadata == {"a": True, "b": True}
        assert repr(pipeline) == "EventProcessingPipeline(stages=['a', 'b'])"

    @pytest.mark.asyncio
    async def test_process_when_stage_raises_taxonomy_error_then_stops(self, clock) -> None:
        calls: list[str] = []
        error = TransportError("boom")
        pipeline = (
            EventProcessingPipeline()
            .add_stage(_RecordingStage("a", calls, fail=error))
            .add_stage(_RecordingStage("b", calls))
        )

        result = await pipeline.process(_context(clock))

        assert result.success is False
        assert result.error is error
        assert calls == ["a"]

    @pytest.mark.asyncio
    async def test_process_when_unexpected_exception_then_failed_without_error(self, clock) -> None:
        calls: list[str] = []
        pipeline = EventProcessingPipeline().add_stage(
            _RecordingStage("a", calls, fail=RuntimeError("bug"))
        )

        result = await pipeline.process(_context(clock))

        assert result.success is False
        assert result.error is None
        assert "bug" in result.errors[0]


class TestFetchStage:
    @pytest.mark.asyncio
    async def test_fetch_when_url_missing_then_config_error(self, clock, feed_server) -> None:
        with pytest.raises(ConfigError):
            await FetchStage(feed_server.fetcher()).process(_context(clock, source_url=" "))
        assert feed_server.requests == []

    @pytest.mark.asyncio
    async def test_fetch_records_response_and_status(self, clock, feed_server) -> None:
        feed_server.body = "BEGIN:VCALENDAR"
        statuses: list[str] = []
        context = _context(clock, on_status=statuses.append)

        await FetchStage(feed_server.fetcher()).process(context)

        assert context.response == FeedResponse(status_code=200, text="BEGIN:VCALENDAR")
        assert context.fetched_at == NOW
        assert statuses == ["Fetching"]
        assert f"Fetching ICS: {URL}" in context.diagnostics.text
        assert "Fetch status=200, chars=15" in context.diagnostics.text


class TestValidationStage:
    @pytest.mark.asyncio
    async def test_validation_when_non_2xx_then_fetch_failed(self, clock) -> None:
        context = _context(clock, response=FeedResponse(status_code=500, text="oops"))
        with pytest.raises(InvalidFeedError) as exc_info:
            await ValidationStage().process(context)
        assert exc_info.value.status_label == "Fetch failed"
        assert exc_info.value.status_code == 500
        assert "bodyPresent=True" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_validation_when_empty_body_then_fetch_failed(self, clock) -> None:
        context = _context(clock, response=FeedResponse(status_code=200, text=""))
        with pytest.raises(InvalidFeedError, match="bodyPresent=False"):
            await ValidationStage().process(context)

    @pytest.mark.asyncio
    async def test_validation_when_html_then_invalid_ics_with_head(self, clock) -> None:
        body = "<html>\n<body>Sign in</body></html>"
        context = _context(clock, response=FeedResponse(status_code=200, text=body))
        with pytest.raises(InvalidFeedError) as exc_info:
            await ValidationStage().process(context)
        err = exc_info.value
        assert err.status_label == "Invalid ICS"
        assert err.head == "<html>\\n<body>Sign in</body></html>"
        assert str(err).startswith("Invalid ICS: missing VCALENDAR/VEVENT. Head='<html>")

    @pytest.mark.asyncio
    async def test_validation_when_calendar_without_events_then_invalid(self, clock) -> None:
        body = "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
        context = _context(clock, response=FeedResponse(status_code=200, text=body))
        with pytest.raises(InvalidFeedError):
            await ValidationStage().process(context)


class TestParseAndSelectionStages:
    @pytest.mark.asyncio
    async def test_parse_records_drops_and_metadata(
        self, clock, make_ics: Callable[..., str]
    ) -> None:
        body = make_ics(
            ["UID:ok", "DTSTART:20250101T140000Z"],
            ["UID:bad", "DTSTART:nope"],
            header=["X-WR-TIMEZONE:America/Chicago"],
        )
        statuses: list[str] = []
        context = _context(
            clock, response=FeedResponse(status_code=200, text=body), on_status=statuses.append
        )

        result = await ParseStage().process(context)

        assert statuses == ["Parsing"]
        assert result.metadata == {
            "calendar_tz": "America/Chicago",
            "events_parsed": 1,
            "events_dropped": 1,
        }
        assert len(result.warnings) == 1
        assert "Calendar TZ detected: America/Chicago" in context.diagnostics.text
        assert "Parsed VEVENT count=1" in context.diagnostics.text

    @pytest.mark.asyncio
    async def test_full_pipeline_when_standup_then_active(
        self, clock, feed_server, standup_ics: str
    ) -> None:
        feed_server.body = standup_ics
        context = _context(clock)

        result = await create_run_pipeline(feed_server.fetcher()).process(context)

        assert result.success is True
        assert context.selection is not None
        assert context.selection.signal is True
        assert context.selection.governing.summary == "Standup"
        assert "Eligible=1, active=1" in context.diagnostics.text

    @pytest.mark.asyncio
    async def test_selection_traces_ineligible_counts(
        self, clock, make_ics: Callable[..., str]
    ) -> None:
        body = make_ics(
            ["UID:free", "TRANSP:TRANSPARENT", "DTSTART:20250101T140000Z"],
            ["UID:off", "STATUS:CANCELLED", "DTSTART:20250101T143000Z"],
        )
        context = _context(clock, response=FeedResponse(status_code=200, text=body))

        await ParseStage().process(context)
        await SelectionStage().process(context)

        assert context.selection.signal is False
        assert "Ineligible in window: cancelled=1, transparent=1" in context.diagnostics.text
