"""Expansion of recurring template events into concrete occurrences."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from calendarlog.calendar.models import CalendarEvent
from calendarlog.calendar.rrule_engine import RuleEngine
from calendarlog.exceptions import InvalidRecurrencePatternError

logger = logging.getLogger(__name__)


class RecurrenceExpander:
    """Turns recurring templates into occurrence events within a window.

    Output order: non-recurring events first (input order), then each
    template's occurrences in rule order, grouped by template. With
    ``sort_by_start`` the final list is instead stably sorted by start.
    """

    def __init__(self, rule_engine: Optional[RuleEngine] = None, sort_by_start: bool = False) -> None:
        self.rule_engine = rule_engine or RuleEngine()
        self.sort_by_start = sort_by_start

    def expand(
        self,
        events: Iterable[CalendarEvent],
        window_start: datetime,
        window_end: datetime,
    ) -> list[CalendarEvent]:
        """Expand templates and pass through one-off events.

        Args:
            events: Stored events, recurring templates and one-offs mixed
            window_start: Inclusive window start
            window_end: Exclusive window end

        Returns:
            One-off events followed by generated occurrences

        Raises:
            InvalidRecurrencePatternError: If a template's pattern does not parse
        """
        single: list[CalendarEvent] = []
        templates: list[CalendarEvent] = []
        for event in events:
            (templates if event.is_recurring else single).append(event)

        expanded: list[CalendarEvent] = []
        for template in templates:
            expanded.extend(self.expand_template(template, window_start, window_end))

        logger.debug(
            "Expanded %d templates into %d occurrences; %d one-off events passed through",
            len(templates),
            len(expanded),
            len(single),
        )

        result = single + expanded
        if self.sort_by_start:
            result.sort(key=lambda e: e.start_date_utc)
        return result

    def expand_template(
        self,
        template: CalendarEvent,
        window_start: datetime,
        window_end: datetime,
    ) -> list[CalendarEvent]:
        """Generate the occurrences of one template inside the window."""
        try:
            rule = self.rule_engine.parse(template.recurrence_pattern, dtstart=template.start_date_utc)
            starts = self.rule_engine.occurrences_between(rule, window_start, window_end)
        except InvalidRecurrencePatternError as e:
            logger.warning("Cannot expand event %s: %s", template.id, e.reason)
            raise e.for_event(template.id) from e

        return self.generate_occurrences(template, starts)

    @staticmethod
    def generate_occurrences(template: CalendarEvent, starts: Iterable[datetime]) -> list[CalendarEvent]:
        """Copy the template once per start, sizing each copy by its duration."""
        duration = template.duration_delta
        return [
            template.model_copy(update={"start_date_utc": start, "end_date_utc": start + duration})
            for start in starts
        ]
