"""Windowed calendar queries over the current aggregate snapshot."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from calendarlog.calendar.models import CalendarEvent
from calendarlog.calendar.recurrence_expander import RecurrenceExpander
from calendarlog.core.interfaces import EventLog
from calendarlog.domain.pipeline import QueryContext, QueryPipeline
from calendarlog.domain.pipeline_stages import ExpansionStage, OverlapFilterStage, SnapshotStage
from calendarlog.domain.query_window import QuerySelector, QueryWindow, compute_window
from calendarlog.exceptions import QueryValidationError

logger = logging.getLogger(__name__)


class QueryService:
    """Answers "events overlapping this window" queries.

    Each query computes the window from its selector, reads the snapshot
    from the event log, keeps stored events overlapping the window and
    expands the surviving recurring templates inside it. A template whose own
    interval misses the window is dropped unless ``expand_all_templates`` is
    set. Errors (for example an unparseable recurrence pattern) propagate to
    the caller; stored state is untouched.
    """

    def __init__(
        self,
        event_log: EventLog,
        aggregation_name: str = "events",
        expander: Optional[RecurrenceExpander] = None,
        expand_all_templates: bool = False,
    ) -> None:
        self.event_log = event_log
        self.aggregation_name = aggregation_name
        self.expander = expander or RecurrenceExpander()
        self.pipeline = (
            QueryPipeline()
            .add_stage(SnapshotStage(event_log, aggregation_name))
            .add_stage(OverlapFilterStage(expand_all_templates))
            .add_stage(ExpansionStage(self.expander))
        )

    async def query(self, selector: QuerySelector) -> list[CalendarEvent]:
        """Run a query for a granularity selector.

        Raises:
            QueryValidationError: If the selector is invalid
            InvalidRecurrencePatternError: If a template in range cannot be expanded
        """
        return await self.query_window(compute_window(selector))

    async def query_window(self, window: QueryWindow) -> list[CalendarEvent]:
        """Run a query for an already computed window.

        An empty window ``[a, a)`` matches nothing.
        """
        if window.is_empty:
            logger.debug("Empty window at %s; no events", window.start)
            return []
        logger.debug("Querying %s for %s..%s", self.aggregation_name, window.start, window.end)
        result = await self.pipeline.process(QueryContext(window=window))
        return result.events

    async def events_for_date(self, year: int, month: int, day: int) -> list[CalendarEvent]:
        return await self.query(build_selector(year=year, month=month, day=day))

    async def events_for_month(self, year: int, month: int) -> list[CalendarEvent]:
        return await self.query(build_selector(year=year, month=month))

    async def events_for_year(self, year: int) -> list[CalendarEvent]:
        return await self.query(build_selector(year=year))

    async def events_between(self, start: datetime | str, end: datetime | str) -> list[CalendarEvent]:
        return await self.query(build_selector(start_date_utc=start, end_date_utc=end))


def build_selector(**fields: Any) -> QuerySelector:
    """Validate selector fields, reporting bad input as a query error.

    Raises:
        QueryValidationError: If a field has the wrong type or an unparseable instant
    """
    try:
        return QuerySelector(**fields)
    except ValidationError as e:
        raise QueryValidationError(f"Invalid query selector: {e.error_count()} validation error(s)") from e


def serialize_events(events: Iterable[CalendarEvent]) -> list[dict[str, Any]]:
    """JSON-safe camelCase form of query results."""
    return [event.to_wire() for event in events]
