"""Concrete pipeline stages for a switch run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..calendar.event_builder import parse_ics
from ..exceptions import ConfigError, InvalidFeedError
from .formatting import safe_head
from .pipeline import EventProcessingPipeline, ProcessingContext, ProcessingResult
from .selector import select_events

if TYPE_CHECKING:
    from ..core.fetcher import FeedFetcher

logger = logging.getLogger(__name__)

STATUS_FETCHING = "Fetching"
STATUS_PARSING = "Parsing"
STATUS_INVALID_ICS = "Invalid ICS"

DOCUMENT_MARKER = "BEGIN:VCALENDAR"
EVENT_MARKER = "BEGIN:VEVENT"


class FetchStage:
    """Download the feed into ``context.response``."""

    def __init__(self, fetcher: FeedFetcher) -> None:
        self.fetcher = fetcher

    @property
    def name(self) -> str:
        return "Fetch"

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name)
        if not (context.source_url or "").strip():
            raise ConfigError("ICS URL is empty")

        context.report_status(STATUS_FETCHING)
        context.trace(f"Fetching ICS: {context.source_url}")

        response = await self.fetcher.fetch(context.source_url or "")
        context.response = response
        context.fetched_at = context.now
        context.trace(f"Fetch status={response.status_code}, chars={len(response.text)}")
        result.metadata["status_code"] = response.status_code
        return result


class ValidationStage:
    """Reject responses that cannot be parsed.

    A non-2xx status or an empty body is a failed fetch; a body without both
    the VCALENDAR and VEVENT markers is an invalid feed.
    """

    @property
    def name(self) -> str:
        return "Validation"

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name)
        response = context.response
        if response is None or not response.is_success or not response.text:
            status = response.status_code if response is not None else None
            body_present = bool(response is not None and response.text)
            raise InvalidFeedError(
                f"Fetch failed: status={status}, bodyPresent={body_present}",
                status_code=status,
            )

        body = response.text
        if DOCUMENT_MARKER not in body or EVENT_MARKER not in body:
            head = safe_head(body)
            raise InvalidFeedError(
                f"Invalid ICS: missing VCALENDAR/VEVENT. Head='{head}'",
                status_code=response.status_code,
                head=head,
                status_label=STATUS_INVALID_ICS,
            )
        return result


class ParseStage:
    """Parse the body into events and record the feed timezone hint."""

    @property
    def name(self) -> str:
        return "Parse"

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name)
        context.report_status(STATUS_PARSING)

        body = context.response.text if context.response is not None else ""
        parsed = parse_ics(body, context.local_tz)
        context.parse_result = parsed

        context.trace(f"Calendar TZ detected: {parsed.feed_timezone.tzid or 'none'}")
        for dropped in parsed.dropped:
            context.trace(dropped.describe())
            result.warnings.append(dropped.describe())
        context.trace(f"Parsed VEVENT count={len(parsed.events)}")

        result.metadata["calendar_tz"] = parsed.feed_timezone.tzid
        result.metadata["events_parsed"] = len(parsed.events)
        result.metadata["events_dropped"] = len(parsed.dropped)
        return result


class SelectionStage:
    """Window, filter and select the active and next events."""

    @property
    def name(self) -> str:
        return "Selection"

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name)
        events = context.parse_result.events if context.parse_result is not None else []

        selection = select_events(events, context.now, context.window, context.eligibility)
        context.selection = selection

        if selection.excluded:
            summary = ", ".join(f"{k}={v}" for k, v in sorted(selection.excluded.items()))
            context.trace(f"Ineligible in window: {summary}")
        if selection.degenerate:
            context.trace(f"Discarded {selection.degenerate} events inverted by offsets")
        context.trace(
            f"Eligible={len(selection.events)}, active={len(selection.active)}"
        )

        result.metadata["eligible"] = len(selection.events)
        result.metadata["active"] = len(selection.active)
        return result


def create_run_pipeline(fetcher: FeedFetcher) -> EventProcessingPipeline:
    """Build the standard fetch, validate, parse, select pipeline."""
    return (
        EventProcessingPipeline()
        .add_stage(FetchStage(fetcher))
        .add_stage(ValidationStage())
        .add_stage(ParseStage())
        .add_stage(SelectionStage())
    )
