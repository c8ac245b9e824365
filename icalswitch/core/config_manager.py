"""Environment and ``.env`` configuration overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Environment variable -> SwitchConfig field. Values stay strings here;
# SwitchConfig.from_dict() does the coercion.
ENV_OVERRIDES: dict[str, str] = {
    "ICALSWITCH_ICS_URL": "ics_url",
    "ICALSWITCH_POLL_SECONDS": "poll_seconds",
    "ICALSWITCH_INCLUDE_PAST_HOURS": "include_past_hours",
    "ICALSWITCH_HORIZON_DAYS": "horizon_days",
    "ICALSWITCH_MAX_EVENTS": "max_events",
    "ICALSWITCH_TRIGGER_BUSY_ONLY": "trigger_busy_only",
    "ICALSWITCH_EXCLUDE_TENTATIVE": "exclude_tentative",
    "ICALSWITCH_EXCLUDE_DECLINED_IF_PRESENT": "exclude_declined_if_present",
    "ICALSWITCH_TRIGGER_ALL_DAY": "trigger_all_day",
    "ICALSWITCH_INCLUDE_KEYWORDS": "include_keywords",
    "ICALSWITCH_EXCLUDE_KEYWORDS": "exclude_keywords",
    "ICALSWITCH_START_OFFSET_MINUTES": "start_offset_minutes",
    "ICALSWITCH_END_OFFSET_MINUTES": "end_offset_minutes",
    "ICALSWITCH_LOCAL_TIMEZONE": "local_timezone",
    "ICALSWITCH_SERVER_BIND": "server_bind",
    "ICALSWITCH_SERVER_PORT": "server_port",
}


def _unquote(value: str) -> str:
    return value.strip().strip('"').strip("'")


def parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=value`` pairs from a .env file.

    Comments, blank lines and lines without ``=`` are skipped and quotes
    around values are removed. A missing or unreadable file yields ``{}``.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        logger.debug("Could not read %s; ignoring it", path, exc_info=True)
        return {}

    pairs: dict[str, str] = {}
    for line in (raw.strip() for raw in content.splitlines()):
        if line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if sep and key.strip():
            pairs[key.strip()] = _unquote(value)
    return pairs


class ConfigManager:
    """Collects ``ICALSWITCH_*`` overrides from the environment and a .env file.

    Args:
        env_file_path: .env location; defaults to ``./.env``
    """

    def __init__(self, env_file_path: Path | None = None):
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Export .env entries that the environment does not already define.

        Returns:
            Names of the variables taken from the file
        """
        exported = []
        for key, value in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = value
                exported.append(key)
        if exported:
            logger.debug("Exported from %s: %s", self.env_file_path, ", ".join(exported))
        return exported

    def build_config_from_env(self) -> dict[str, Any]:
        """Map set, non-blank ``ICALSWITCH_*`` variables to config field names."""
        overrides = {
            field_name: os.environ[env_key].strip()
            for env_key, field_name in ENV_OVERRIDES.items()
            if os.environ.get(env_key, "").strip()
        }
        if overrides:
            logger.debug("Environment overrides: %s", ", ".join(sorted(overrides)))
        return overrides

    def load_full_config(self) -> dict[str, Any]:
        """Apply the .env file, then return the environment overrides."""
        self.load_env_file()
        return self.build_config_from_env()
