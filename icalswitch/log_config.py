"""
Central logging configuration for icalswitch.

Quiets chatty third-party loggers (HTTP client, web server access log, event
loop) while keeping the package's own loggers at INFO, or DEBUG when debug
mode is requested.
"""

import logging
import os
from typing import Optional

# Third-party loggers that are noisy at DEBUG
_THIRD_PARTY_LEVELS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}

_PACKAGE_LOGGERS = [
    "icalswitch",
    "icalswitch.calendar",
    "icalswitch.core",
    "icalswitch.domain",
    "icalswitch.driver",
]


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logger levels for icalswitch.

    Args:
        debug_mode: Whether to enable debug logging for icalswitch modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        ICALSWITCH_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ICALSWITCH_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ICALSWITCH_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("ICALSWITCH_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config = dict(_THIRD_PARTY_LEVELS)
    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in _PACKAGE_LOGGERS:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for icalswitch modules")
    else:
        root_logger.info("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["icalswitch", "httpx", "aiohttp.access", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
