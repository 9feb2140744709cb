"""Instant parsing, formatting and clock utilities for calendarlog.

All timestamps handled by the calendar are absolute instants normalised to
aware UTC datetimes. Naive inputs are interpreted as UTC.
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Any

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CALENDARLOG_TEST_TIME"


def ensure_utc(dt: datetime.datetime) -> datetime.datetime:
    """Normalise a datetime to aware UTC.

    Args:
        dt: Naive (assumed UTC) or aware datetime

    Returns:
        Aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.UTC)
    return dt.astimezone(datetime.UTC)


def parse_instant(value: Any) -> datetime.datetime:
    """Parse an ISO-8601 string, date or datetime into an aware UTC datetime.

    Args:
        value: ISO-8601 string ("2024-03-04T09:00Z", "2024-03-04T09:00:00+01:00"),
            ``datetime`` or ``date``

    Returns:
        Aware UTC datetime

    Raises:
        ValueError: If the value cannot be interpreted as an instant
    """
    if isinstance(value, datetime.datetime):
        return ensure_utc(value)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min, tzinfo=datetime.UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty datetime string")
        try:
            return ensure_utc(date_parser.isoparse(text))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid ISO-8601 instant: {value!r}") from e
    raise ValueError(f"Unsupported instant type: {type(value).__name__}")


def format_instant(dt: datetime.datetime) -> str:
    """Format an instant as ISO-8601 UTC with a ``Z`` suffix."""
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


class TimeProvider:
    """Clock with an environment override for deterministic tests."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via CALENDARLOG_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2024-03-04T08:00:00Z")

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                return parse_instant(test_time)
            except ValueError as e:
                logger.warning("Invalid %s=%r, using real clock: %s", TEST_TIME_ENV, test_time, e)
        return datetime.datetime.now(datetime.UTC)


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function).

    Returns:
        Current time in UTC
    """
    return _time_provider.now_utc()
