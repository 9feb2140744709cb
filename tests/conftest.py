"""Shared fixtures for calendarlog tests."""

import logging
import os
from collections.abc import Generator
from datetime import datetime, timedelta
from typing import Any, Callable

import pytest

from calendarlog.calendar.models import CalendarEvent
from calendarlog.core.event_log import InMemoryEventLog
from calendarlog.domain.event_store import EventStore
from calendarlog.logging_config import CALENDARLOG_MODULES

_CALENDARLOG_ENV = (
    "CALENDARLOG_DEBUG",
    "CALENDARLOG_LOG_LEVEL",
    "CALENDARLOG_LOG_PATH",
    "CALENDARLOG_AGGREGATION_NAME",
    "CALENDARLOG_NOTIFICATION_OFFSET_MINUTES",
    "CALENDARLOG_MAX_OCCURRENCES",
    "CALENDARLOG_SORT_RESULTS",
    "CALENDARLOG_EXPAND_ALL_TEMPLATES",
    "CALENDARLOG_TEST_TIME",
)


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: End-to-end tests across components")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear CALENDARLOG_* variables so host settings do not leak into tests."""
    for key in _CALENDARLOG_ENV:
        monkeypatch.delenv(key, raising=False)
    yield
    # Values written straight to os.environ (e.g. by .env loading) are not tracked by monkeypatch.
    for key in _CALENDARLOG_ENV:
        os.environ.pop(key, None)


@pytest.fixture
def make_event() -> Callable[..., CalendarEvent]:
    """Factory for CalendarEvent with a one-hour default span.

    Usage: ``make_event("e1", datetime(2024, 3, 4, 9, tzinfo=UTC), minutes=15, pattern="every week")``.
    A non-empty ``pattern`` marks the event recurring.
    """

    def _make(
        event_id: str,
        start: datetime,
        minutes: int = 60,
        title: str = "",
        pattern: str = "",
        description: str = "",
    ) -> CalendarEvent:
        return CalendarEvent(
            id=event_id,
            title=title or f"Event {event_id}",
            description=description,
            start_date_utc=start,
            end_date_utc=start + timedelta(minutes=minutes),
            duration=minutes,
            is_recurring=bool(pattern),
            recurrence_pattern=pattern,
        )

    return _make


@pytest.fixture
def event_store() -> EventStore:
    return EventStore()


@pytest.fixture
def event_log(event_store: EventStore) -> InMemoryEventLog:
    """In-memory log with the ``events`` aggregation registered."""
    log = InMemoryEventLog()
    log.register_aggregation("events", event_store)
    return log


@pytest.fixture
def restore_logging() -> Generator[None, Any, None]:
    """Restore root handlers and the logger levels that configure_logging touches."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    names = ["asyncio", *CALENDARLOG_MODULES]
    levels = {name: logging.getLogger(name).level for name in names}
    root_level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(root_level)
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
