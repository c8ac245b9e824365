"""Calendar switch driver: run loop, timers and device state.

Two timers feed a single asyncio queue consumed by one worker, so pipeline
runs never overlap:

- the regular timer refetches the feed every ``max(30, poll_seconds)``
  seconds and is rearmed after every run;
- the transition timer fires at the next on/off boundary computed by
  icalswitch.domain.scheduler and is cancelled or replaced when the
  boundary moves.

Only regular-timer runs are throttled. Transition, manual and initial runs
always go through.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from .config_loader import SwitchConfig
from .core.diagnostics import DiagnosticBuffer
from .core.fetcher import FeedFetcher
from .core.timezone_utils import Clock, SystemClock
from .domain.formatting import format_event_line, format_list_line, format_stamp
from .domain.pipeline import EventProcessingPipeline, ProcessingContext, ProcessingResult
from .domain.pipeline_stages import create_run_pipeline
from .domain.scheduler import (
    INITIAL_RUN_DELAY_SECONDS,
    RunTrigger,
    SchedulerState,
    TransitionAction,
    TransitionPlan,
    plan_transition,
    regular_interval_seconds,
    throttle_delay,
)
from .exceptions import ConfigError, TransportError

logger = logging.getLogger(__name__)

SWITCH_ON = "on"
SWITCH_OFF = "off"

STATUS_INITIALIZING = "Initializing"
STATUS_OK = "OK"
STATUS_ERROR = "Error"


class DeviceState(BaseModel):
    """Attributes published to the device sink after every change."""

    switch: str = Field(default=SWITCH_OFF, description="on/off")
    active: bool = Field(default=False, description="An eligible event is active now")
    active_summary: Optional[str] = Field(default=None, description="Governing event line")
    next_summary: Optional[str] = Field(default=None, description="Next event line")
    next_events: str = Field(default="", description="Upcoming events, one bulleted line each")
    last_fetch: Optional[str] = Field(default=None, description="Stamp of the last fetch")
    last_status: str = Field(default=STATUS_INITIALIZING, description="Outcome of the last run")
    calendar_tz: Optional[str] = Field(default=None, description="Feed timezone hint")
    raw_debug: str = Field(default="", description="Diagnostic buffer contents")


class DeviceSink(Protocol):
    """Receives the device state (the host's actuator and display)."""

    def publish(self, state: DeviceState) -> None: ...


class LoggingDeviceSink:
    """Sink that only logs switch changes; used when no actuator is attached."""

    def __init__(self) -> None:
        self._last_switch: Optional[str] = None

    def publish(self, state: DeviceState) -> None:
        if state.switch != self._last_switch:
            logger.info("Switch is %s (%s)", state.switch.upper(), state.active_summary or "free")
            self._last_switch = state.switch
        logger.debug("Device state: status=%s active=%s", state.last_status, state.active)


class CalendarSwitchDriver:
    """Owns the scheduler state, the diagnostic buffer and the two timers."""

    def __init__(
        self,
        config: SwitchConfig,
        fetcher: Optional[FeedFetcher] = None,
        clock: Optional[Clock] = None,
        sink: Optional[DeviceSink] = None,
        pipeline: Optional[EventProcessingPipeline] = None,
    ) -> None:
        self.config = config
        self.clock: Clock = clock or SystemClock(config.local_timezone)
        self.fetcher = fetcher or FeedFetcher(timeout_seconds=config.fetch_timeout_seconds)
        self.sink: DeviceSink = sink or LoggingDeviceSink()
        self.pipeline = pipeline or create_run_pipeline(self.fetcher)
        self.diagnostics = DiagnosticBuffer(
            max_chars=config.debug_max_chars,
            enabled=config.debug_logging,
            clock=self.clock,
        )
        self.scheduler_state = SchedulerState()
        self.state = DeviceState()

        self._queue: Optional[asyncio.Queue[RunTrigger]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._regular_handle: Optional[asyncio.TimerHandle] = None
        self._transition_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the worker and schedule the first run."""
        if self._worker is not None:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._worker_loop(), name="icalswitch-worker")
        self.initialize()

    async def stop(self) -> None:
        """Cancel timers and the worker, then release the HTTP client."""
        self.cancel_timers()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        self._queue = None
        await self.fetcher.close()
        logger.debug("Driver stopped")

    def initialize(self) -> None:
        """Reset scheduling memory and schedule a first run shortly."""
        self.cancel_timers()
        self.scheduler_state.reset()
        self.state.last_status = STATUS_INITIALIZING

        cfg = self.config
        self._trace(
            f"Initialized. pollSeconds={cfg.poll_seconds}, busyOnly={cfg.trigger_busy_only}, "
            f"excludeTentative={cfg.exclude_tentative}, "
            f"excludeDeclined={cfg.exclude_declined_if_present}, allDay={cfg.trigger_all_day}, "
            f"offsets={cfg.start_offset_minutes}/{cfg.end_offset_minutes}min"
        )
        self._arm_regular(INITIAL_RUN_DELAY_SECONDS, RunTrigger.INITIAL)
        self._publish()

    async def _worker_loop(self) -> None:
        assert self._queue is not None
        while True:
            trigger = await self._queue.get()
            try:
                await self.run_once(trigger)
            except Exception:
                logger.exception("Unexpected error during %s run", trigger.value)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_run(self, trigger: RunTrigger) -> None:
        """Queue a run; it executes after any run already in progress."""
        if self._queue is None:
            logger.debug("Driver not started; dropping %s run request", trigger.value)
            return
        self._queue.put_nowait(trigger)

    def refresh(self) -> None:
        self.request_run(RunTrigger.MANUAL)

    # Same behaviour as refresh(); kept as a separate command name
    show_next = refresh

    def clear_debug(self) -> None:
        self.diagnostics.clear()
        self._publish()

    def turn_on(self) -> None:
        self._set_switch(SWITCH_ON)
        self._trace("Switch manually turned ON.")
        self._publish()

    def turn_off(self) -> None:
        self._set_switch(SWITCH_OFF)
        self._trace("Switch manually turned OFF.")
        self._publish()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    @property
    def transition_pending(self) -> bool:
        return self._transition_handle is not None

    @property
    def regular_pending(self) -> bool:
        return self._regular_handle is not None

    def cancel_timers(self) -> None:
        self._cancel_regular()
        self._cancel_transition()

    def _cancel_regular(self) -> None:
        if self._regular_handle is not None:
            self._regular_handle.cancel()
            self._regular_handle = None

    def _cancel_transition(self) -> None:
        if self._transition_handle is not None:
            self._transition_handle.cancel()
            self._transition_handle = None

    def _arm_regular(self, delay: float, trigger: RunTrigger = RunTrigger.REGULAR) -> None:
        self._cancel_regular()
        loop = asyncio.get_running_loop()
        self._regular_handle = loop.call_later(delay, self._on_regular_timer, trigger)

    def _on_regular_timer(self, trigger: RunTrigger) -> None:
        self._regular_handle = None
        self.request_run(trigger)

    def _arm_transition(self, delay: float) -> None:
        self._cancel_transition()
        loop = asyncio.get_running_loop()
        self._transition_handle = loop.call_later(delay, self._on_transition_timer)

    def _on_transition_timer(self) -> None:
        self._transition_handle = None
        self.request_run(RunTrigger.TRANSITION)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def run_once(self, trigger: RunTrigger = RunTrigger.MANUAL) -> Optional[ProcessingResult]:
        """Execute one pipeline run.

        Returns:
            The pipeline result, or None when a regular run was throttled
        """
        now = self.clock.now()

        if trigger is RunTrigger.TRANSITION:
            # The boundary this timer was armed for has been reached; forget
            # it so the run re-arms even if the timer fired a little early.
            self.scheduler_state.next_transition_at = None

        delay = throttle_delay(self.scheduler_state, trigger, now, self.config.poll_seconds)
        if delay is not None:
            self._trace(f"Poll throttled; next poll in ~{round(delay)}s")
            self._arm_regular(delay)
            self._publish()
            return None

        self.scheduler_state.last_poll_at = now
        context = ProcessingContext(
            now=now,
            local_tz=self.clock.local_timezone(),
            source_url=self.config.ics_url,
            eligibility=self.config.eligibility(),
            window=self.config.window(),
            diagnostics=self.diagnostics,
            on_status=self._set_status,
        )
        logger.debug("Starting %s run at %s", trigger.value, now.isoformat())

        result = await self.pipeline.process(context)

        if context.fetched_at is not None:
            self.state.last_fetch = format_stamp(context.fetched_at, context.local_tz)

        if result.success and context.selection is not None:
            self._apply_selection(context)
        else:
            self._apply_failure(result)

        interval = regular_interval_seconds(self.config.poll_seconds)
        self._arm_regular(interval)
        self._trace(f"Scheduled regular poll in {interval}s")
        self._publish()
        return result

    def _apply_selection(self, context: ProcessingContext) -> None:
        selection = context.selection
        assert selection is not None
        tz = context.local_tz

        if context.parse_result is not None:
            self.state.calendar_tz = context.parse_result.feed_timezone.tzid

        self.state.active = selection.signal
        self.state.active_summary = (
            format_event_line(selection.governing, tz) if selection.governing else None
        )
        self.state.next_summary = (
            format_event_line(selection.next_event, tz) if selection.next_event else None
        )
        self.state.next_events = "\n".join(
            format_list_line(e, tz, self.config.next_list_show_location)
            for e in selection.upcoming(self.config.next_list_count)
        )

        desired = SWITCH_ON if selection.signal else SWITCH_OFF
        if self._set_switch(desired):
            self._trace(f"Switch set to {desired} (eligibleActive={selection.signal})")

        plan = plan_transition(selection, self.scheduler_state, context.now)
        self._apply_transition_plan(plan, tz)
        self.state.last_status = STATUS_OK

    def _apply_transition_plan(self, plan: TransitionPlan, tz: ZoneInfo) -> None:
        if plan.action is TransitionAction.CLEAR:
            self._cancel_transition()
            self._trace("No upcoming transition found.")
            return

        assert plan.target is not None
        stamp = format_stamp(plan.target, tz)
        if plan.action is TransitionAction.KEEP:
            if self._transition_handle is None:
                # timers were cancelled while the target was kept
                self._arm_transition(plan.delay_seconds)
            self._trace(
                f"Transition unchanged ({plan.reason}) in {round(plan.delay_seconds)}s at {stamp}"
            )
            return

        self._arm_transition(plan.delay_seconds)
        self._trace(
            f"Scheduled transition ({plan.reason}) in {round(plan.delay_seconds)}s at {stamp}"
        )

    def _apply_failure(self, result: ProcessingResult) -> None:
        error = result.error
        if error is None:
            self.state.last_status = STATUS_ERROR
            detail = "; ".join(result.errors) or "unknown error"
            self._trace(f"Run failed: {detail}")
            return

        self.state.last_status = error.status_label
        if isinstance(error, ConfigError):
            self._trace(f"Poll aborted: {error}")
            # An unconfigured switch must not stay on
            self.state.active = False
            if self._set_switch(SWITCH_OFF):
                self._trace("Switch set to off (no usable ICS URL)")
            return

        if isinstance(error, TransportError):
            self._trace(f"Fetch exception: {error}")
        else:
            self._trace(str(error))

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _set_switch(self, value: str) -> bool:
        """Set the switch attribute; True when it actually changed."""
        if self.state.switch == value:
            return False
        self.state.switch = value
        return True

    def _set_status(self, status: str) -> None:
        self.state.last_status = status
        self._publish()

    def _trace(self, message: str) -> None:
        self.diagnostics.add(message)

    def _publish(self) -> None:
        self.state.raw_debug = self.diagnostics.text
        self.sink.publish(self.state.model_copy())


# ----------------------------------------------------------------------
# Entry points
# ----------------------------------------------------------------------


async def _run_single(config: SwitchConfig) -> DeviceState:
    async with FeedFetcher(timeout_seconds=config.fetch_timeout_seconds) as fetcher:
        driver = CalendarSwitchDriver(config, fetcher=fetcher)
        try:
            await driver.run_once(RunTrigger.MANUAL)
        finally:
            driver.cancel_timers()
        return driver.state


def run_single(config: SwitchConfig) -> DeviceState:
    """Perform one run and print the resulting device state as JSON."""
    state = asyncio.run(_run_single(config))
    print(json.dumps(state.model_dump(), indent=2))
    return state


async def _serve(config: SwitchConfig, serve: bool) -> None:
    driver = CalendarSwitchDriver(config)
    stop_event = asyncio.Event()
    runner = None

    if serve:
        from aiohttp import web

        from .api.server import make_app

        runner = web.AppRunner(make_app(driver))
        await runner.setup()
        site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
        await site.start()
        logger.info("Status API listening on %s:%d", config.server_bind, config.server_port)

    await driver.start()

    loop = asyncio.get_running_loop()

    def _on_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await driver.stop()
    if runner is not None:
        await runner.cleanup()
    logger.info("Shutdown complete")


def run_forever(config: SwitchConfig, serve: bool = False) -> None:
    """Run the driver (and optionally the status API) until SIGINT/SIGTERM."""
    if not config.ics_url:
        logger.warning("No ICS URL configured; the switch will stay off")
    try:
        asyncio.run(_serve(config, serve))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
