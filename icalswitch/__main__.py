"""Command-line entry for icalswitch."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the icalswitch CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="icalswitch",
        description="Follow an ICS calendar feed and drive a busy/free switch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m icalswitch --url https://example.com/cal.ics --once   # one run, print state
  python -m icalswitch --config icalswitch.yaml                    # run until interrupted
  python -m icalswitch --serve --port 3000                         # also serve the status API
        """,
    )

    parser.add_argument("--config", metavar="PATH", help="YAML configuration file")
    parser.add_argument("--url", metavar="URL", help="ICS feed URL (overrides config)")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Perform a single run and print the device state as JSON",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Expose the status API while running",
    )
    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port for the status API (default: 8080, or ICALSWITCH_SERVER_PORT)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def main() -> NoReturn:
    """Run the icalswitch CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        run(args)
    except (ValueError, OSError) as exc:
        print(f"icalswitch: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
