"""Staged processing pipeline for one switch run.

A run moves the feed through fetch, validation, parse and selection stages.
Stages share a ProcessingContext and raise IcalSwitchError subclasses when
the run cannot continue; the pipeline turns those into a failed
ProcessingResult so nothing escapes to the run loop.

Usage:
    pipeline = EventProcessingPipeline()
    pipeline.add_stage(FetchStage(fetcher))
    pipeline.add_stage(ValidationStage())
    pipeline.add_stage(ParseStage())
    pipeline.add_stage(SelectionStage())

    context = ProcessingContext(now=now, local_tz=tz, source_url=url, ...)
    result = await pipeline.process(context)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from ..exceptions import IcalSwitchError
from .eligibility import EligibilityConfig
from .selector import Selection, WindowConfig

if TYPE_CHECKING:
    from ..calendar.event_builder import ParseResult
    from ..core.diagnostics import DiagnosticBuffer
    from ..core.fetcher import FeedResponse

logger = logging.getLogger(__name__)


@dataclass
class ProcessingContext:
    """State passed between pipeline stages.

    The configuration snapshots are fixed for the run; the processing fields
    are filled in by the stages in order.
    """

    now: datetime
    local_tz: ZoneInfo
    source_url: Optional[str] = None
    eligibility: EligibilityConfig = field(default_factory=EligibilityConfig)
    window: WindowConfig = field(default_factory=WindowConfig)

    # Processing state (modified by stages)
    response: Optional[FeedResponse] = None
    fetched_at: Optional[datetime] = None
    parse_result: Optional[ParseResult] = None
    selection: Optional[Selection] = None

    # Collaborators
    diagnostics: Optional[DiagnosticBuffer] = None
    on_status: Optional[Callable[[str], None]] = None

    def trace(self, message: str) -> None:
        """Append a line to the diagnostic buffer, if one is attached."""
        if self.diagnostics is not None:
            self.diagnostics.add(message)

    def report_status(self, status: str) -> None:
        if self.on_status is not None:
            self.on_status(status)


@dataclass
class ProcessingResult:
    """Outcome of a stage or of the whole pipeline."""

    success: bool = True
    error: Optional[IcalSwitchError] = None
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    stage_name: str = ""

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning("%s stage: %s", self.stage_name, message)

    def add_error(self, message: str) -> None:
        """Record ``message`` and mark the result failed."""
        self.success = False
        self.errors.append(message)
        logger.error("%s stage: %s", self.stage_name, message)


class EventProcessor(Protocol):
    """One stage of a run.

    Each stage reads from and writes to the context, returns a result with
    any warnings and metadata, and raises IcalSwitchError when the run must
    stop.
    """

    @property
    def name(self) -> str: ...

    async def process(self, context: ProcessingContext) -> ProcessingResult: ...


class EventProcessingPipeline:
    """Runs stages in sequence and stops at the first failure."""

    def __init__(self) -> None:
        self.stages: list[EventProcessor] = []

    def add_stage(self, stage: EventProcessor) -> EventProcessingPipeline:
        """Append ``stage`` and return the pipeline so calls can be chained."""
        self.stages.append(stage)
        return self

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Execute all stages in sequence.

        Args:
            context: Processing context with the run's configuration

        Returns:
            Aggregated result; on failure ``error`` holds the taxonomy error
            that stopped the run (or None for an unexpected exception)
        """
        total = len(self.stages)
        aggregated = ProcessingResult(stage_name="Pipeline")

        for position, stage in enumerate(self.stages, start=1):
            logger.debug("Stage %d/%d: %s", position, total, stage.name)

            try:
                stage_result = await stage.process(context)
            except IcalSwitchError as e:
                aggregated.error = e
                aggregated.add_error(f"{stage.name}: {e}")
                return aggregated
            except Exception as e:
                aggregated.add_error(f"Stage {stage.name} raised exception: {e}")
                logger.exception("Unexpected failure in %s stage", stage.name)
                return aggregated

            aggregated.warnings.extend(stage_result.warnings)
            aggregated.errors.extend(stage_result.errors)
            if not stage_result.success:
                aggregated.success = False
                logger.error("Run stopped after %s stage (%d/%d)", stage.name, position, total)
                return aggregated
            aggregated.metadata.update(stage_result.metadata)

        aggregated.success = True
        logger.debug("Pipeline completed: %d warnings", len(aggregated.warnings))
        return aggregated

    def __repr__(self) -> str:
        return f"EventProcessingPipeline(stages={[s.name for s in self.stages]})"
