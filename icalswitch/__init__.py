"""icalswitch - follow an ICS calendar feed and drive a busy/free switch.

The package keeps top-level imports light: the driver, fetcher and HTTP API
are imported lazily by the entry points so the parsing modules can be used
on their own.
"""

__version__ = "0.3.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to the console.

    Installs a colorized formatter on the root logger when no handler is
    present yet. The ICALSWITCH_DEBUG environment variable (truthy values:
    "1", "true", "yes", "on") forces DEBUG so parser and scheduler traces are
    visible without a config change.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("ICALSWITCH_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run(args: Optional[object] = None) -> None:
    """Load configuration and run the switch driver until interrupted.

    Args:
        args: Parsed CLI namespace (see icalswitch.__main__) or None for defaults.
    """
    from .config_loader import load_config
    from .core.config_manager import ConfigManager

    config_path = getattr(args, "config", None) if args is not None else None
    config = load_config(config_path)
    config = config.merged(ConfigManager().load_full_config())

    url = getattr(args, "url", None) if args is not None else None
    if url:
        config = config.merged({"ics_url": url})
    port = getattr(args, "port", None) if args is not None else None
    if port:
        config = config.merged({"server_port": port})
    if args is not None and getattr(args, "debug", False):
        config = config.merged({"log_level": "DEBUG"})

    _init_logging(config.log_level)

    from .log_config import configure_logging

    configure_logging(debug_mode=config.log_level == "DEBUG")

    from .driver import run_forever, run_single

    if args is not None and getattr(args, "once", False):
        run_single(config)
        return
    run_forever(config, serve=bool(getattr(args, "serve", False)) if args is not None else False)
