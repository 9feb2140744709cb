"""Calendar event models and recurrence handling."""

from calendarlog.calendar.models import (
    CalendarEvent,
    DeleteEventRecord,
    MutationRecord,
    MutationType,
    SetEventParams,
    SetEventRecord,
    parse_record,
)
from calendarlog.calendar.overlap_filter import filter_overlapping, overlaps
from calendarlog.calendar.recurrence_expander import RecurrenceExpander
from calendarlog.calendar.rrule_engine import RecurrenceRule, RuleEngine

__all__ = [
    "CalendarEvent",
    "DeleteEventRecord",
    "MutationRecord",
    "MutationType",
    "RecurrenceExpander",
    "RecurrenceRule",
    "RuleEngine",
    "SetEventParams",
    "SetEventRecord",
    "filter_overlapping",
    "overlaps",
    "parse_record",
]
