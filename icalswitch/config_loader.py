"""icalswitch.config_loader

YAML configuration for the calendar switch.

- Exposes a typed dataclass `SwitchConfig` and a `load_config()` helper that
  accepts an optional path override.
- Values are coerced conservatively: bad ints and bools fall back to the
  default with a warning instead of failing startup.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .domain.eligibility import EligibilityConfig, parse_keywords
from .domain.selector import WindowConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = (
    Path("icalswitch.yaml"),
    Path.home() / ".config" / "icalswitch" / "config.yaml",
)

_TRUE_STRINGS = ("1", "true", "yes", "on")
_FALSE_STRINGS = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class SwitchConfig:
    """Typed configuration for the switch driver.

    Fields:
        ics_url: feed URL; None leaves the switch off
        poll_seconds: regular refetch period (floored to 30 by the scheduler)
        include_past_hours / horizon_days: selection window around now
        max_events: cap on eligible events kept per run
        trigger_*, exclude_*: eligibility toggles
        include_keywords / exclude_keywords: comma-separated, case-insensitive
        start_offset_minutes / end_offset_minutes: signed shifts of each event
        next_list_count / next_list_show_location: upcoming list shape
        debug_logging / debug_max_chars: diagnostic buffer toggle and cap
        fetch_timeout_seconds: HTTP timeout for the feed
        local_timezone: IANA name; None detects the host timezone
        server_bind / server_port: status API listener
        log_level: logging level name
    """

    ics_url: Optional[str] = None
    poll_seconds: int = 900
    include_past_hours: int = 6
    horizon_days: int = 3
    max_events: int = 80
    trigger_busy_only: bool = True
    exclude_tentative: bool = False
    exclude_declined_if_present: bool = False
    trigger_all_day: bool = False
    include_keywords: str = ""
    exclude_keywords: str = ""
    start_offset_minutes: int = 0
    end_offset_minutes: int = 0
    next_list_count: int = 10
    next_list_show_location: bool = True
    debug_logging: bool = True
    debug_max_chars: int = 6000
    fetch_timeout_seconds: int = 25
    local_timezone: Optional[str] = None
    server_bind: str = "127.0.0.1"
    server_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> SwitchConfig:
        """Create a SwitchConfig from a plain mapping, applying defaults and coercion.

        Unknown keys are ignored with a debug message. Counts that must not be
        negative are raised to zero with a warning.
        """
        if data is None:
            data = {}
        defaults = cls()

        known = {f.name for f in dataclasses.fields(cls)}
        for key in sorted(set(data) - known):
            logger.debug("Ignoring unknown config key %r", key)

        def _coerce_int(key: str, minimum: Optional[int] = None) -> int:
            default = getattr(defaults, key)
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if minimum is not None and value < minimum:
                logger.warning("Config %s=%d below minimum; coercing to %d", key, value, minimum)
                return minimum
            return value

        def _coerce_bool(key: str) -> bool:
            default = getattr(defaults, key)
            raw = data.get(key, default)
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower() if raw is not None else ""
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            logger.warning("Config %s=%r is not a bool; using default %s", key, raw, default)
            return default

        def _optional_str(key: str) -> Optional[str]:
            raw = data.get(key)
            if raw is None:
                return None
            text = str(raw).strip()
            return text or None

        log_level = data.get("log_level", defaults.log_level)
        server_bind = data.get("server_bind", defaults.server_bind)

        return cls(
            ics_url=_optional_str("ics_url"),
            poll_seconds=_coerce_int("poll_seconds", minimum=1),
            include_past_hours=_coerce_int("include_past_hours", minimum=0),
            horizon_days=_coerce_int("horizon_days", minimum=0),
            max_events=_coerce_int("max_events", minimum=0),
            trigger_busy_only=_coerce_bool("trigger_busy_only"),
            exclude_tentative=_coerce_bool("exclude_tentative"),
            exclude_declined_if_present=_coerce_bool("exclude_declined_if_present"),
            trigger_all_day=_coerce_bool("trigger_all_day"),
            include_keywords=str(data.get("include_keywords") or ""),
            exclude_keywords=str(data.get("exclude_keywords") or ""),
            start_offset_minutes=_coerce_int("start_offset_minutes"),
            end_offset_minutes=_coerce_int("end_offset_minutes"),
            next_list_count=_coerce_int("next_list_count", minimum=0),
            next_list_show_location=_coerce_bool("next_list_show_location"),
            debug_logging=_coerce_bool("debug_logging"),
            debug_max_chars=_coerce_int("debug_max_chars", minimum=0),
            fetch_timeout_seconds=_coerce_int("fetch_timeout_seconds", minimum=1),
            local_timezone=_optional_str("local_timezone"),
            server_bind=str(server_bind) if server_bind else defaults.server_bind,
            server_port=_coerce_int("server_port", minimum=0),
            log_level=str(log_level).upper() if log_level else defaults.log_level,
        )

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    def merged(self, overrides: Optional[dict[str, Any]]) -> SwitchConfig:
        """Return a new config with ``overrides`` applied on top of this one."""
        if not overrides:
            return self
        return SwitchConfig.from_dict({**self.to_dict(), **overrides})

    def eligibility(self) -> EligibilityConfig:
        """Immutable filter snapshot for one run."""
        return EligibilityConfig(
            trigger_busy_only=self.trigger_busy_only,
            exclude_tentative=self.exclude_tentative,
            exclude_declined_if_present=self.exclude_declined_if_present,
            trigger_all_day=self.trigger_all_day,
            include_keywords=parse_keywords(self.include_keywords),
            exclude_keywords=parse_keywords(self.exclude_keywords),
            start_offset_minutes=self.start_offset_minutes,
            end_offset_minutes=self.end_offset_minutes,
        )

    def window(self) -> WindowConfig:
        return WindowConfig(
            include_past_hours=self.include_past_hours,
            horizon_days=self.horizon_days,
            max_events=self.max_events,
        )


def _load_yaml(path: Path) -> Any:
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | None = None) -> SwitchConfig:
    """Load configuration from a YAML file and return a SwitchConfig.

    Args:
        path: Optional path to the config file. Without one, ``./icalswitch.yaml``
              and then ``~/.config/icalswitch/config.yaml`` are tried.

    Returns:
        SwitchConfig with values from the file (or defaults).

    Behavior:
    - If no file is found: returns SwitchConfig() with defaults.
    - If the file exists but its top level is not a mapping: raises ValueError.
    - If the file is not valid YAML: yaml.YAMLError propagates.
    """
    candidates = (Path(path),) if path else DEFAULT_CONFIG_PATHS
    for p in candidates:
        logger.debug("Attempting to load config from %s", p)
        if not p.exists():
            continue
        raw = _load_yaml(p)
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        cfg = SwitchConfig.from_dict(raw)
        logger.info("Loaded configuration from %s", p)
        logger.debug("Configuration values: %s", cfg)
        return cfg

    logger.info("No config file found (%s); using defaults", ", ".join(str(c) for c in candidates))
    return SwitchConfig()
