"""Aggregate reducer folding the mutation log into current calendar state.

The state is a read-only mapping ``id -> CalendarEvent``. Every reduce
returns a fresh container, so snapshots handed to readers are never changed
underneath them. Records that cannot be applied leave the state untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from calendarlog.calendar.models import CalendarEvent, DeleteEventRecord, SetEventRecord, parse_record
from calendarlog.exceptions import MalformedRecordError, UnknownMutationTagError

logger = logging.getLogger(__name__)

CalendarState = Mapping[str, CalendarEvent]

_EMPTY_STATE: CalendarState = MappingProxyType({})


class ReduceOutcome(str, Enum):
    """Whether a record changed the state."""

    APPLIED = "applied"
    IGNORED = "ignored"


class IgnoreReason(str, Enum):
    """Why a record was ignored."""

    UNKNOWN_TAG = "unknown_tag"
    MALFORMED = "malformed"
    MISSING_EVENT = "missing_event"


@dataclass(frozen=True)
class ReduceResult:
    """Result of applying one record."""

    state: CalendarState
    outcome: ReduceOutcome
    reason: Optional[IgnoreReason] = None

    @property
    def applied(self) -> bool:
        return self.outcome is ReduceOutcome.APPLIED


class EventStore:
    """Reducer for the ``events`` aggregation."""

    def initialize(self, prior_snapshot: Optional[Mapping[str, Any]] = None) -> CalendarState:
        """Return the prior snapshot as state, or an empty state.

        Args:
            prior_snapshot: Mapping of id to CalendarEvent or to its serialized form

        Returns:
            Read-only calendar state
        """
        if not prior_snapshot:
            return _EMPTY_STATE
        events = {}
        for event_id, value in prior_snapshot.items():
            event = value if isinstance(value, CalendarEvent) else CalendarEvent.model_validate(value)
            events[event_id] = event
        return MappingProxyType(events)

    def apply(self, state: CalendarState, record: Any) -> ReduceResult:
        """Apply exactly one record and report the outcome.

        Unknown tags, malformed records and deletes of absent ids are ignored:
        the returned state is the input state.
        """
        try:
            parsed = parse_record(record)
        except UnknownMutationTagError as e:
            logger.debug("Ignoring record with unknown tag %r", e.tag)
            return ReduceResult(state, ReduceOutcome.IGNORED, IgnoreReason.UNKNOWN_TAG)
        except MalformedRecordError as e:
            logger.warning("Ignoring malformed record: %s", e)
            return ReduceResult(state, ReduceOutcome.IGNORED, IgnoreReason.MALFORMED)

        if isinstance(parsed, SetEventRecord):
            events = dict(state)
            events[parsed.event.id] = parsed.event
            return ReduceResult(MappingProxyType(events), ReduceOutcome.APPLIED)

        if isinstance(parsed, DeleteEventRecord):
            if parsed.event_id not in state:
                logger.debug("Delete of unknown event %s ignored", parsed.event_id)
                return ReduceResult(state, ReduceOutcome.IGNORED, IgnoreReason.MISSING_EVENT)
            events = {k: v for k, v in state.items() if k != parsed.event_id}
            return ReduceResult(MappingProxyType(events), ReduceOutcome.APPLIED)

        return ReduceResult(state, ReduceOutcome.IGNORED, IgnoreReason.UNKNOWN_TAG)

    def reduce(self, state: CalendarState, record: Any) -> CalendarState:
        """Apply one record and return the state that replaces ``state``."""
        return self.apply(state, record).state

    def fold(self, records: Iterable[Any], state: Optional[CalendarState] = None) -> CalendarState:
        """Fold records in order, starting from ``state`` or empty."""
        current = self.initialize() if state is None else state
        applied = ignored = 0
        for record in records:
            result = self.apply(current, record)
            current = result.state
            if result.applied:
                applied += 1
            else:
                ignored += 1
        logger.debug("Folded %d records (%d ignored) into %d events", applied + ignored, ignored, len(current))
        return current

    @staticmethod
    def serialize(state: CalendarState) -> dict[str, dict[str, Any]]:
        """Plain JSON-safe copy of the state for persistence."""
        return {event_id: event.to_wire() for event_id, event in state.items()}

