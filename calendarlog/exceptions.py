"""Custom exception hierarchy for calendarlog.

Every error raised by the calendar core derives from CalendarLogError so
callers can catch calendar failures in one place while still being able to
distinguish query-level failures from record-level ones.
"""

from __future__ import annotations

from typing import Any, Optional


class CalendarLogError(Exception):
    """Base exception for all calendarlog errors."""


class InvalidRecurrencePatternError(CalendarLogError):
    """A recurrence pattern could not be parsed into a rule.

    Raised when:
    - The pattern is empty or blank
    - Neither the RRULE grammar nor the text grammar accepts the pattern
    - No start anchor is available for the rule

    Fails the specific query or expansion; stored state is untouched.
    """

    def __init__(self, pattern: str, reason: str, event_id: Optional[str] = None) -> None:
        self.pattern = pattern
        self.reason = reason
        self.event_id = event_id
        where = f" (event {event_id})" if event_id else ""
        super().__init__(f"Invalid recurrence pattern {pattern!r}{where}: {reason}")

    def for_event(self, event_id: str) -> InvalidRecurrencePatternError:
        """Return a copy of this error annotated with the offending event id."""
        return InvalidRecurrencePatternError(self.pattern, self.reason, event_id=event_id)


class MutationRecordError(CalendarLogError):
    """Base class for mutation records rejected at the log boundary.

    The reducer never lets these escape: it logs them and keeps the prior state.
    """

    def __init__(self, message: str, record: Any = None) -> None:
        self.record = record
        super().__init__(message)


class UnknownMutationTagError(MutationRecordError):
    """A record carries a type tag outside SET_EVENT / DELETE_EVENT."""

    def __init__(self, tag: Any, record: Any = None) -> None:
        self.tag = tag
        super().__init__(f"Unknown mutation tag: {tag!r}", record)


class MalformedRecordError(MutationRecordError):
    """A record has a known tag but its payload failed validation."""


class QueryValidationError(CalendarLogError):
    """A query selector is invalid.

    Raised when:
    - The selector combines fields that do not form a granularity
    - Year/month/day do not form a real calendar date
    - An explicit range ends before it starts
    """


class SchedulerError(CalendarLogError):
    """The job scheduler was asked to run an action it does not know."""


class ConfigurationError(CalendarLogError):
    """A configuration value is invalid."""
