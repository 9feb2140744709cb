"""Command-line entry for calendarlog.

Subcommands operate on a JSON-lines mutation log: ``set`` and ``delete``
append records, ``query`` folds the log and prints the events overlapping a
day, month, year or explicit range as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

from pydantic import ValidationError

from . import _init_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendarlog CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendarlog",
        description="calendarlog - event-sourced calendar over a mutation log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  calendarlog --log cal.jsonl set --title Standup --start 2024-03-04T09:00:00Z --duration 15 \\
      --pattern "FREQ=DAILY;COUNT=5"
  calendarlog --log cal.jsonl query --date 2024-03-05
  calendarlog --log cal.jsonl query --start 2024-03-01T00:00:00Z --end 2024-03-08T00:00:00Z
  calendarlog --log cal.jsonl delete e1
        """,
    )
    parser.add_argument(
        "--log",
        type=Path,
        metavar="PATH",
        help="JSON-lines mutation log (default: CALENDARLOG_LOG_PATH env var)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    set_parser = subparsers.add_parser("set", help="Create or replace an event")
    set_parser.add_argument("--id", dest="event_id", help="Event id (allocated when omitted)")
    set_parser.add_argument("--title", required=True)
    set_parser.add_argument("--description", default="")
    set_parser.add_argument("--start", required=True, help="Start instant (ISO 8601, UTC)")
    span = set_parser.add_mutually_exclusive_group(required=True)
    span.add_argument("--end", help="End instant (ISO 8601, UTC)")
    span.add_argument("--duration", type=int, help="Duration in minutes")
    set_parser.add_argument(
        "--pattern",
        default="",
        help="Recurrence pattern (RRULE or text such as 'every week'); marks the event recurring",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete an event by id")
    delete_parser.add_argument("event_id")

    query_parser = subparsers.add_parser("query", help="List events overlapping a window")
    selector = query_parser.add_mutually_exclusive_group()
    selector.add_argument("--date", help="Day as YYYY-MM-DD")
    selector.add_argument("--month", help="Month as YYYY-MM")
    selector.add_argument("--year", type=int, help="Year as YYYY")
    query_parser.add_argument("--start", help="Explicit window start (ISO 8601, UTC)")
    query_parser.add_argument("--end", help="Explicit window end (ISO 8601, UTC)")
    query_parser.add_argument("--sort", action="store_true", help="Sort results by start time")

    return parser


def _selector_fields(args: argparse.Namespace) -> dict[str, Any]:
    """Translate query arguments into selector fields."""
    from calendarlog.exceptions import QueryValidationError

    if args.start or args.end:
        if args.date or args.month or args.year is not None:
            raise QueryValidationError("Use either --date/--month/--year or --start/--end")
        return {"start_date_utc": args.start, "end_date_utc": args.end}

    try:
        if args.date:
            year, month, day = (int(part) for part in args.date.split("-"))
            return {"year": year, "month": month, "day": day}
        if args.month:
            year, month = (int(part) for part in args.month.split("-"))
            return {"year": year, "month": month}
    except ValueError as e:
        raise QueryValidationError(f"Invalid date argument: {e}") from e
    if args.year is not None:
        return {"year": args.year}
    raise QueryValidationError("query needs --date, --month, --year or --start/--end")


async def _run_command(args: argparse.Namespace) -> Any:
    from dataclasses import replace

    from calendarlog.core.config_manager import ConfigManager
    from calendarlog.core.dependencies import DependencyContainer
    from calendarlog.core.time_utils import parse_instant
    from calendarlog.domain.query_service import build_selector, serialize_events

    settings = ConfigManager().load_settings()
    if args.log is not None:
        settings = replace(settings, log_path=args.log)
    if getattr(args, "sort", False):
        settings = replace(settings, sort_results=True)

    deps = DependencyContainer.build_dependencies(settings)
    try:
        if args.command == "set":
            params: dict[str, Any] = {
                "title": args.title,
                "description": args.description,
                "start_date_utc": args.start,
                "end_date_utc": args.end,
                "duration": args.duration,
                "is_recurring": bool(args.pattern),
                "recurrence_pattern": args.pattern,
            }
            if args.event_id:
                params["id"] = args.event_id
            if args.pattern:
                # Reject patterns that can never be expanded before they reach the log.
                deps.rule_engine.parse(args.pattern, parse_instant(args.start))
            event = await deps.actions.set_event(params)
            return event.to_wire()

        if args.command == "delete":
            return {"deleted": await deps.actions.delete_event(args.event_id)}

        selector = build_selector(**_selector_fields(args))
        return serialize_events(await deps.query_service.query(selector))
    finally:
        await deps.scheduler.shutdown()


def run(argv: Optional[list[str]] = None) -> int:
    """Parse ``argv``, run the command and print its JSON result.

    Returns:
        Process exit code
    """
    from calendarlog.exceptions import CalendarLogError
    from calendarlog.logging_config import configure_logging, set_current_command

    parser = _create_parser()
    args = parser.parse_args(argv)

    _init_logging(os.environ.get("CALENDARLOG_LOG_LEVEL", "WARNING"))
    configure_logging(force_debug=True if args.debug else None, default_level=logging.WARNING)
    set_current_command(args.command)

    try:
        result = asyncio.run(_run_command(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except (CalendarLogError, ValidationError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    print(json.dumps(result, indent=2, sort_keys=True))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the calendarlog CLI."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
