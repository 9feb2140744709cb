"""Protocols for the collaborators the calendar core consumes.

The log substrate persists and replays the mutation log, the job scheduler
fires actions at a future instant and the resource allocator hands out ids.
Reference implementations live in ``event_log``, ``scheduler`` and
``resources``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Protocol

if TYPE_CHECKING:
    from calendarlog.calendar.models import CalendarEvent
    from calendarlog.domain.event_store import EventStore

ActionHandler = Callable[[Any], Awaitable[Any]]


class EventLog(Protocol):
    """Ordered, durable mutation log with folded aggregations."""

    def register_aggregation(self, name: str, store: EventStore) -> None:
        """Register the reducer the log folds records with for ``name``."""
        ...

    async def get_current_snapshot(self, aggregation_name: str) -> Mapping[str, CalendarEvent]:
        """Return the current folded state of an aggregation."""
        ...

    async def append_record(
        self,
        tag: str,
        payload: Mapping[str, Any],
        meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Append a record ``{"type": tag, **payload}`` to the log."""
        ...


class ResourceAllocator(Protocol):
    """Allocator for new resource ids."""

    def allocate_id(self) -> str:
        ...


class JobScheduler(Protocol):
    """Fire-and-forget scheduler of named actions."""

    def register_action(self, action_name: str, handler: ActionHandler) -> None:
        ...

    def schedule(self, action_name: str, payload: Any, when_utc: datetime, dedupe_key: str) -> None:
        """Schedule ``action_name(payload)`` at ``when_utc``, replacing any job with ``dedupe_key``."""
        ...

    def unschedule(self, dedupe_key: str) -> None:
        """Cancel the job with ``dedupe_key`` if one is pending."""
        ...
