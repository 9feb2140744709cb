"""Concrete query pipeline stages.

Each stage wraps one piece of the calendar core (snapshot read, overlap
filter, recurrence expansion) behind the QueryStage protocol.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from calendarlog.calendar.overlap_filter import overlaps
from calendarlog.calendar.recurrence_expander import RecurrenceExpander
from calendarlog.domain.pipeline import QueryContext, StageResult

if TYPE_CHECKING:
    from calendarlog.core.interfaces import EventLog

logger = logging.getLogger(__name__)


class SnapshotStage:
    """Load the current aggregate snapshot from the event log."""

    def __init__(self, event_log: EventLog, aggregation_name: str = "events") -> None:
        self.event_log = event_log
        self.aggregation_name = aggregation_name

    @property
    def name(self) -> str:
        return "Snapshot"

    async def process(self, context: QueryContext) -> StageResult:
        snapshot = await self.event_log.get_current_snapshot(self.aggregation_name)
        context.snapshot = snapshot
        context.events = list(snapshot.values())
        return StageResult(stage_name=self.name, events_in=0, events_out=len(context.events))


class OverlapFilterStage:
    """Keep stored events whose interval overlaps the query window.

    Every stored event, recurring templates included, is judged by its own
    ``[start, end)``; a template whose reference interval misses the window is
    dropped before expansion. With ``expand_all_templates`` templates pass
    regardless and the expander keeps only occurrences inside the window.
    """

    def __init__(self, expand_all_templates: bool = False) -> None:
        self.expand_all_templates = expand_all_templates

    @property
    def name(self) -> str:
        return "OverlapFilter"

    async def process(self, context: QueryContext) -> StageResult:
        window = context.window
        events_in = len(context.events)
        context.events = [
            e
            for e in context.events
            if (e.is_recurring and self.expand_all_templates) or overlaps(e, window.start, window.end)
        ]
        return StageResult(
            stage_name=self.name,
            events_in=events_in,
            events_out=len(context.events),
            metadata={"filtered": events_in - len(context.events)},
        )


class ExpansionStage:
    """Expand recurring templates into occurrences inside the window."""

    def __init__(self, expander: RecurrenceExpander) -> None:
        self.expander = expander

    @property
    def name(self) -> str:
        return "Expansion"

    async def process(self, context: QueryContext) -> StageResult:
        events_in = len(context.events)
        context.events = self.expander.expand(context.events, context.window.start, context.window.end)
        return StageResult(stage_name=self.name, events_in=events_in, events_out=len(context.events))
