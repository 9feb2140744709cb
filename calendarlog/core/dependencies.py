"""Dependency injection container for calendarlog."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from calendarlog.calendar.recurrence_expander import RecurrenceExpander
from calendarlog.calendar.rrule_engine import RuleEngine
from calendarlog.core.config_manager import CalendarLogSettings
from calendarlog.core.event_log import InMemoryEventLog
from calendarlog.core.resources import UuidResourceAllocator
from calendarlog.core.scheduler import AsyncioJobScheduler
from calendarlog.domain.actions import CalendarActions
from calendarlog.domain.event_store import EventStore
from calendarlog.domain.query_service import QueryService


@dataclass
class AppDependencies:
    """Container for all application dependencies.

    Holds the shared collaborators and services so the CLI and tests can be
    wired the same way.
    """

    settings: CalendarLogSettings

    # Collaborators
    event_log: InMemoryEventLog
    scheduler: AsyncioJobScheduler
    allocator: UuidResourceAllocator

    # Core
    event_store: EventStore
    rule_engine: RuleEngine
    expander: RecurrenceExpander

    # Services
    query_service: QueryService
    actions: CalendarActions


class DependencyContainer:
    """Factory for building application dependencies."""

    @staticmethod
    def build_dependencies(
        settings: Optional[CalendarLogSettings] = None,
        event_log: Optional[InMemoryEventLog] = None,
    ) -> AppDependencies:
        """Build all application dependencies.

        Args:
            settings: Resolved settings (defaults when omitted)
            event_log: Event log to use; a new one on ``settings.log_path`` otherwise

        Returns:
            AppDependencies with the events aggregation registered and the
            reminder action wired to the scheduler
        """
        settings = settings or CalendarLogSettings()
        event_log = event_log or InMemoryEventLog(settings.log_path)

        event_store = EventStore()
        event_log.register_aggregation(settings.aggregation_name, event_store)

        rule_engine = RuleEngine(max_occurrences=settings.max_occurrences)
        expander = RecurrenceExpander(rule_engine, sort_by_start=settings.sort_results)
        query_service = QueryService(
            event_log,
            settings.aggregation_name,
            expander,
            expand_all_templates=settings.expand_all_templates,
        )

        scheduler = AsyncioJobScheduler()
        allocator = UuidResourceAllocator()
        actions = CalendarActions(
            event_log,
            scheduler,
            allocator,
            notification_offset=timedelta(minutes=settings.notification_offset_minutes),
        )
        actions.register()

        return AppDependencies(
            settings=settings,
            event_log=event_log,
            scheduler=scheduler,
            allocator=allocator,
            event_store=event_store,
            rule_engine=rule_engine,
            expander=expander,
            query_service=query_service,
            actions=actions,
        )
