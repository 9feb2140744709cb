"""Recurrence rule parsing and occurrence enumeration.

Two pattern grammars are accepted:

- RFC 5545 RRULE text, e.g. ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE``, optionally
  prefixed with ``RRULE:`` and optionally multi-line with ``DTSTART``,
  ``EXDATE`` and ``RDATE`` lines. Evaluation is delegated to
  ``dateutil.rrule.rrulestr``.
- The plain-text form recurrence libraries render rules to, e.g.
  ``every week``, ``every 2 days for 5 times``, ``weekly on monday and friday``,
  ``every month until 2025-01-01``.

Occurrences are enumerated eagerly over a half-open ``[start, end)`` window.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil.rrule import DAILY, FR, HOURLY, MINUTELY, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, YEARLY, rrule, rrulestr

from calendarlog.core.time_utils import ensure_utc
from calendarlog.exceptions import InvalidRecurrencePatternError

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 5000

_FREQ_BY_UNIT = {
    "minute": MINUTELY,
    "hour": HOURLY,
    "day": DAILY,
    "weekday": DAILY,
    "week": WEEKLY,
    "month": MONTHLY,
    "year": YEARLY,
}

_SHORTHANDS = {
    "hourly": "every hour",
    "daily": "every day",
    "weekly": "every week",
    "monthly": "every month",
    "yearly": "every year",
    "annually": "every year",
}

_WEEKDAYS = {
    "mo": MO,
    "tu": TU,
    "we": WE,
    "th": TH,
    "fr": FR,
    "sa": SA,
    "su": SU,
}
_DAY_NAMES = {
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "mon", "tue", "tues", "wed", "thu", "thur", "thurs", "fri", "sat", "sun",
    "mo", "tu", "we", "th", "fr", "sa", "su",
}
_WORKING_DAYS = (MO, TU, WE, TH, FR)

_TEXT_PATTERN = re.compile(
    r"^every"
    r"(?:\s+(?P<interval>\d+|other))?"
    r"\s+(?P<unit>minute|hour|weekday|day|week|month|year)s?"
    r"(?:\s+on\s+(?P<days>[a-z,\s]+?))?"
    r"(?:\s+for\s+(?P<count>\d+)\s+times?)?"
    r"(?:\s+until\s+(?P<until>.+?))?$"
)


@dataclass(frozen=True)
class RecurrenceRule:
    """A parsed recurrence rule anchored at ``dtstart``."""

    pattern: str
    dtstart: datetime
    rule: Any = field(repr=False, compare=False)


def _looks_like_rfc(text: str) -> bool:
    upper = text.upper()
    return "FREQ=" in upper or upper.startswith(("RRULE:", "DTSTART"))


class RuleEngine:
    """Parses recurrence patterns and enumerates their occurrences."""

    def __init__(self, max_occurrences: int = DEFAULT_MAX_OCCURRENCES) -> None:
        """Initialize the engine.

        Args:
            max_occurrences: Safety cap on occurrences returned per rule and window
        """
        self.max_occurrences = max_occurrences

    def parse(self, pattern: Optional[str], dtstart: Optional[datetime] = None) -> RecurrenceRule:
        """Parse a recurrence pattern into a rule.

        A ``DTSTART`` line inside an RRULE pattern takes precedence over the
        ``dtstart`` argument; otherwise ``dtstart`` anchors the rule.

        Args:
            pattern: RRULE or text recurrence pattern
            dtstart: Anchor instant, normally the template's start

        Returns:
            RecurrenceRule

        Raises:
            InvalidRecurrencePatternError: If the pattern cannot be parsed or has no anchor
        """
        if pattern is None or not pattern.strip():
            raise InvalidRecurrencePatternError(pattern or "", "empty pattern")

        text = pattern.strip()
        anchor = ensure_utc(dtstart) if dtstart is not None else None
        if _looks_like_rfc(text):
            return self._parse_rfc(pattern, text, anchor)
        return self._parse_text(pattern, text, anchor)

    def _parse_rfc(self, pattern: str, text: str, anchor: Optional[datetime]) -> RecurrenceRule:
        lines = []
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            if line.upper().startswith("DTSTART"):
                value = line.split(":", 1)[-1]
                try:
                    anchor = ensure_utc(date_parser.parse(value))
                except (ValueError, OverflowError) as e:
                    raise InvalidRecurrencePatternError(pattern, f"bad DTSTART {value!r}") from e
                continue
            lines.append(line)

        if anchor is None:
            raise InvalidRecurrencePatternError(pattern, "no start anchor")
        if not lines:
            raise InvalidRecurrencePatternError(pattern, "no rule lines")

        try:
            rule = rrulestr("\n".join(lines), dtstart=anchor, forceset=True, unfold=True)
        except (ValueError, TypeError, KeyError, AttributeError, OverflowError) as e:
            raise InvalidRecurrencePatternError(pattern, str(e) or type(e).__name__) from e

        logger.debug("Parsed RRULE pattern %r anchored at %s", pattern, anchor)
        return RecurrenceRule(pattern=pattern, dtstart=anchor, rule=rule)

    def _parse_text(self, pattern: str, text: str, anchor: Optional[datetime]) -> RecurrenceRule:
        normalized = " ".join(text.lower().split())
        for shorthand, expansion in _SHORTHANDS.items():
            if normalized == shorthand or normalized.startswith(shorthand + " "):
                normalized = expansion + normalized[len(shorthand):]
                break

        match = _TEXT_PATTERN.match(normalized)
        if match is None:
            raise InvalidRecurrencePatternError(pattern, "unrecognized recurrence text")
        if anchor is None:
            raise InvalidRecurrencePatternError(pattern, "no start anchor")

        unit = match.group("unit")
        kwargs: dict[str, Any] = {"dtstart": anchor}

        interval_text = match.group("interval")
        if interval_text:
            interval = 2 if interval_text == "other" else int(interval_text)
            if interval < 1:
                raise InvalidRecurrencePatternError(pattern, "interval must be positive")
            kwargs["interval"] = interval

        if unit == "weekday":
            kwargs["byweekday"] = _WORKING_DAYS
        if match.group("days"):
            kwargs["byweekday"] = self._parse_days(pattern, match.group("days"))

        if match.group("count"):
            count = int(match.group("count"))
            if count < 1:
                raise InvalidRecurrencePatternError(pattern, "count must be positive")
            kwargs["count"] = count

        if match.group("until"):
            until_text = match.group("until")
            try:
                kwargs["until"] = ensure_utc(date_parser.parse(until_text))
            except (ValueError, OverflowError) as e:
                raise InvalidRecurrencePatternError(pattern, f"bad until date {until_text!r}") from e

        try:
            rule = rrule(_FREQ_BY_UNIT[unit], **kwargs)
        except (ValueError, TypeError) as e:
            raise InvalidRecurrencePatternError(pattern, str(e)) from e

        logger.debug("Parsed text pattern %r -> %s", pattern, kwargs)
        return RecurrenceRule(pattern=pattern, dtstart=anchor, rule=rule)

    @staticmethod
    def _parse_days(pattern: str, days_text: str) -> tuple[Any, ...]:
        tokens = [t for t in re.split(r"[,\s]+", days_text) if t and t != "and"]
        days: list[Any] = []
        for token in tokens:
            if token in ("weekday", "weekdays"):
                days.extend(_WORKING_DAYS)
            elif token in ("weekend", "weekends"):
                days.extend((SA, SU))
            elif token in _DAY_NAMES:
                days.append(_WEEKDAYS[token[:2]])
            else:
                raise InvalidRecurrencePatternError(pattern, f"unknown weekday {token!r}")
        if not days:
            raise InvalidRecurrencePatternError(pattern, "empty weekday list")
        return tuple(dict.fromkeys(days))

    def occurrences_between(
        self,
        rule: RecurrenceRule,
        window_start: datetime,
        window_end: datetime,
    ) -> list[datetime]:
        """Enumerate occurrence starts within ``[window_start, window_end)``.

        Args:
            rule: Parsed recurrence rule
            window_start: Inclusive window start
            window_end: Exclusive window end

        Returns:
            Ascending list of aware UTC instants

        Raises:
            InvalidRecurrencePatternError: If the rule cannot be evaluated
        """
        start = ensure_utc(window_start)
        end = ensure_utc(window_end)
        if end <= start:
            return []

        occurrences: list[datetime] = []
        try:
            for occurrence in rule.rule.xafter(start, inc=True):
                normalized = ensure_utc(occurrence)
                if normalized >= end:
                    break
                if len(occurrences) >= self.max_occurrences:
                    logger.warning(
                        "Recurrence %r truncated at %d occurrences in window %s..%s",
                        rule.pattern,
                        self.max_occurrences,
                        start,
                        end,
                    )
                    break
                occurrences.append(normalized)
        except TypeError as e:
            # naive EXDATE/RDATE values against an aware anchor
            raise InvalidRecurrencePatternError(rule.pattern, f"cannot evaluate rule: {e}") from e

        return occurrences


_default_engine = RuleEngine()


def parse_pattern(pattern: Optional[str], dtstart: Optional[datetime] = None) -> RecurrenceRule:
    """Parse with the module-level engine."""
    return _default_engine.parse(pattern, dtstart)


def occurrences_between(rule: RecurrenceRule, window_start: datetime, window_end: datetime) -> list[datetime]:
    """Enumerate occurrences with the module-level engine."""
    return _default_engine.occurrences_between(rule, window_start, window_end)
