"""
Central logging configuration for calendarlog.

Keeps calendarlog module loggers at a default level (INFO unless the caller
asks for another, DEBUG when troubleshooting) and tags every record with the
CLI command that produced it.
"""

import logging
import os
from contextvars import ContextVar
from typing import Optional

_current_command: ContextVar[str] = ContextVar("calendarlog_command", default="-")

CALENDARLOG_MODULES = [
    "calendarlog",
    "calendarlog.calendar.rrule_engine",
    "calendarlog.calendar.recurrence_expander",
    "calendarlog.domain.event_store",
    "calendarlog.domain.pipeline",
    "calendarlog.domain.query_service",
    "calendarlog.domain.actions",
    "calendarlog.core.event_log",
    "calendarlog.core.scheduler",
]


def set_current_command(command: str) -> None:
    """Record the command name attached to subsequent log records."""
    _current_command.set(command)


def get_current_command() -> str:
    return _current_command.get()


class CommandContextFilter(logging.Filter):
    """Add the current command name to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add ``command`` to the log record.

        Args:
            record: Log record to enhance

        Returns:
            True to allow record to be logged
        """
        record.command = get_current_command()
        return True


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    default_level: int = logging.INFO,
) -> None:
    """
    Configure logging levels for calendarlog.

    Args:
        debug_mode: Whether to enable debug logging for calendarlog modules
        force_debug: Override debug mode setting (None to use env var detection)
        default_level: Level for root and calendarlog loggers when not debugging

    Environment Variables:
        CALENDARLOG_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDARLOG_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALENDARLOG_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALENDARLOG_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else default_level
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    # Keep any colorized handler installed by _init_logging.
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    command_filter = CommandContextFilter()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(command)s] %(levelname)s - %(name)s - %(message)s")
        )
        handler.addFilter(command_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CommandContextFilter) for f in existing_handler.filters):
                existing_handler.addFilter(command_filter)

    logger_config: dict[str, int] = {
        "asyncio": logging.WARNING,
    }
    module_level = logging.DEBUG if final_debug else root_level
    for module in CALENDARLOG_MODULES:
        logger_config[module] = module_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.debug("Debug logging enabled for calendarlog modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["calendarlog", "calendarlog.core.event_log", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
