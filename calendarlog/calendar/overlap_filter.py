"""Half-open interval overlap tests for calendar events."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from calendarlog.calendar.models import CalendarEvent
from calendarlog.core.time_utils import ensure_utc

logger = logging.getLogger(__name__)


def overlaps(event: CalendarEvent, window_start: datetime, window_end: datetime) -> bool:
    """Return True when the event's ``[start, end)`` intersects ``[window_start, window_end)``.

    Both boundaries are exclusive: an event ending exactly at ``window_start``
    or starting exactly at ``window_end`` does not overlap. Zero-duration events
    get no special case: one sitting on either boundary never overlaps.
    """
    return ensure_utc(window_start) < event.end_date_utc and ensure_utc(window_end) > event.start_date_utc


def filter_overlapping(
    events: Iterable[CalendarEvent],
    window_start: datetime,
    window_end: datetime,
) -> list[CalendarEvent]:
    """Keep the events overlapping the window, preserving input order."""
    kept = [e for e in events if overlaps(e, window_start, window_end)]
    logger.debug("Overlap filter kept %d events for %s..%s", len(kept), window_start, window_end)
    return kept
