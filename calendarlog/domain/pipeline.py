"""Query processing pipeline for calendarlog.

A query runs through a fixed sequence of stages sharing a QueryContext:

    pipeline = QueryPipeline()
    pipeline.add_stage(SnapshotStage(event_log, "events"))
    pipeline.add_stage(OverlapFilterStage())
    pipeline.add_stage(ExpansionStage(expander))

    context = QueryContext(window=compute_window(selector))
    result = await pipeline.process(context)

Stage failures are logged and re-raised unchanged so they surface as a
query-level failure to the caller. Stages only read the snapshot; stored
state is never modified by a query.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from calendarlog.calendar.models import CalendarEvent
from calendarlog.domain.event_store import CalendarState
from calendarlog.domain.query_window import QueryWindow

logger = logging.getLogger(__name__)


@dataclass
class QueryContext:
    """Context passed between pipeline stages."""

    window: QueryWindow

    # Populated by stages
    snapshot: Optional[CalendarState] = None
    events: list[CalendarEvent] = field(default_factory=list)

    # Stage-specific data (extensible)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class StageResult:
    """Statistics reported by one stage."""

    stage_name: str = ""
    events_in: int = 0
    events_out: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult:
    """Outcome of a full pipeline run."""

    events: list[CalendarEvent] = field(default_factory=list)
    stages: list[StageResult] = field(default_factory=list)

    @property
    def events_out(self) -> int:
        return len(self.events)


class QueryStage(Protocol):
    """Protocol for a single stage in the query pipeline."""

    async def process(self, context: QueryContext) -> StageResult:
        """Transform ``context.events`` and report statistics."""
        ...

    @property
    def name(self) -> str:
        """Name of this stage for logging."""
        ...


class QueryPipeline:
    """Runs query stages in sequence over a shared context."""

    def __init__(self) -> None:
        self.stages: list[QueryStage] = []

    def add_stage(self, stage: QueryStage) -> QueryPipeline:
        """Add a stage (builder pattern).

        Returns:
            Self for method chaining
        """
        self.stages.append(stage)
        logger.debug("Added stage to pipeline: %s", stage.name)
        return self

    async def process(self, context: QueryContext) -> QueryResult:
        """Execute all stages in order.

        Raises:
            Exception: Whatever a stage raised, after logging it
        """
        result = QueryResult()
        total = len(self.stages)
        for i, stage in enumerate(self.stages, start=1):
            logger.debug("Executing stage %d/%d: %s", i, total, stage.name)
            try:
                stage_result = await stage.process(context)
            except Exception:
                logger.exception("Query stage %s failed", stage.name)
                raise
            logger.debug(
                "Stage %d/%d (%s) completed: events_in=%d, events_out=%d",
                i,
                total,
                stage.name,
                stage_result.events_in,
                stage_result.events_out,
            )
            result.stages.append(stage_result)

        result.events = list(context.events)
        logger.debug(
            "Query for %s..%s returned %d events",
            context.window.start,
            context.window.end,
            result.events_out,
        )
        return result

    def __repr__(self) -> str:
        stage_names = [stage.name for stage in self.stages]
        return f"QueryPipeline(stages={stage_names})"
