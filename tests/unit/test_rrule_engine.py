"""Unit tests for recurrence rule parsing and occurrence enumeration."""

from datetime import UTC, datetime

import pytest

from calendarlog.calendar import rrule_engine
from calendarlog.calendar.rrule_engine import RecurrenceRule, RuleEngine
from calendarlog.exceptions import InvalidRecurrencePatternError

pytestmark = pytest.mark.unit

ANCHOR = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)  # a Monday


def _utc(*args):
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def engine():
    return RuleEngine()


class TestRfcPatterns:
    """RRULE grammar handled through dateutil."""

    def test_daily_interval_and_count(self, engine):
        """Should honour FREQ, INTERVAL and COUNT."""
        rule = engine.parse("FREQ=DAILY;INTERVAL=2;COUNT=3", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 2, 1))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 3, 10), _utc(2024, 1, 5, 10)]

    def test_rrule_prefix_and_byday(self, engine):
        """Should accept an RRULE: prefix and BYDAY lists."""
        rule = engine.parse("RRULE:FREQ=WEEKLY;BYDAY=MO,WE", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 1, 8))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 3, 10)]

    def test_dtstart_line_takes_precedence(self, engine):
        """Should anchor the rule at an embedded DTSTART rather than the argument."""
        rule = engine.parse("DTSTART:20240105T090000Z\nRRULE:FREQ=DAILY;COUNT=2", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 2, 1))

        assert rule.dtstart == _utc(2024, 1, 5, 9)
        assert occurrences == [_utc(2024, 1, 5, 9), _utc(2024, 1, 6, 9)]

    def test_exdate_removes_occurrence(self, engine):
        """Should drop occurrences listed in EXDATE."""
        rule = engine.parse("RRULE:FREQ=DAILY;COUNT=3\nEXDATE:20240102T100000Z", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 2, 1))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 3, 10)]

    @pytest.mark.parametrize(
        "pattern",
        ["FREQ=FORTNIGHTLY", "FREQ=DAILY;INTERVAL=abc", "FREQ=WEEKLY;BYDAY=XX", "RRULE:"],
    )
    def test_invalid_rfc_patterns(self, engine, pattern):
        """Should raise InvalidRecurrencePatternError for rules dateutil rejects."""
        with pytest.raises(InvalidRecurrencePatternError) as exc_info:
            engine.parse(pattern, ANCHOR)

        assert exc_info.value.pattern == pattern


class TestTextPatterns:
    """Plain-text recurrence grammar."""

    def test_every_week(self, engine):
        """Should expand 'every week' weekly from the anchor."""
        rule = engine.parse("every week", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 1, 22))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 8, 10), _utc(2024, 1, 15, 10)]

    def test_interval_and_count(self, engine):
        """Should parse an interval and an occurrence count."""
        rule = engine.parse("every 2 days for 3 times", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 2, 1))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 3, 10), _utc(2024, 1, 5, 10)]

    def test_every_other_week(self, engine):
        """Should treat 'other' as an interval of two."""
        rule = engine.parse("every other week", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 2, 1))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 15, 10), _utc(2024, 1, 29, 10)]

    def test_shorthand_with_weekdays(self, engine):
        """Should expand 'weekly on monday and friday' to both days."""
        rule = engine.parse("Weekly on Monday and Friday", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 1, 8))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 5, 10)]

    def test_every_weekday(self, engine):
        """Should skip weekends for 'every weekday'."""
        rule = engine.parse("every weekday", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 6), _utc(2024, 1, 13))

        assert [o.day for o in occurrences] == [8, 9, 10, 11, 12]

    def test_until_date(self, engine):
        """Should stop at the until date."""
        rule = engine.parse("every month until 2024-03-15", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2025, 1, 1))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 2, 1, 10), _utc(2024, 3, 1, 10)]

    @pytest.mark.parametrize(
        "pattern",
        ["sometimes", "every fortnight", "every week on funday", "every 0 days", "every day for 0 times"],
    )
    def test_invalid_text_patterns(self, engine, pattern):
        """Should raise InvalidRecurrencePatternError for text outside the grammar."""
        with pytest.raises(InvalidRecurrencePatternError):
            engine.parse(pattern, ANCHOR)


class TestParseErrors:
    """Errors common to both grammars."""

    @pytest.mark.parametrize("pattern", ["", "   ", None])
    def test_empty_pattern(self, engine, pattern):
        """Should reject empty patterns."""
        with pytest.raises(InvalidRecurrencePatternError) as exc_info:
            engine.parse(pattern, ANCHOR)

        assert exc_info.value.reason == "empty pattern"

    @pytest.mark.parametrize("pattern", ["every week", "FREQ=WEEKLY"])
    def test_missing_anchor(self, engine, pattern):
        """Should reject patterns with no start anchor."""
        with pytest.raises(InvalidRecurrencePatternError) as exc_info:
            engine.parse(pattern)

        assert exc_info.value.reason == "no start anchor"


class TestOccurrencesBetween:
    """Window semantics of occurrences_between."""

    def test_window_start_inclusive_end_exclusive(self, engine):
        """Should include an occurrence at the window start and exclude one at the end."""
        rule = engine.parse("every day", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 2, 10), _utc(2024, 1, 4, 10))

        assert occurrences == [_utc(2024, 1, 2, 10), _utc(2024, 1, 3, 10)]

    def test_unbounded_rule_is_bounded_by_window(self, engine):
        """Should return a finite list for an unbounded rule."""
        rule = engine.parse("FREQ=DAILY", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2030, 1, 1), _utc(2030, 1, 11))

        assert len(occurrences) == 10
        assert occurrences == sorted(occurrences)

    def test_empty_window(self, engine):
        """Should return nothing when the window is empty."""
        rule = engine.parse("every day", ANCHOR)

        assert engine.occurrences_between(rule, _utc(2024, 1, 5), _utc(2024, 1, 5)) == []
        assert engine.occurrences_between(rule, _utc(2024, 1, 5), _utc(2024, 1, 1)) == []

    def test_window_before_anchor(self, engine):
        """Should produce no occurrences before the anchor."""
        rule = engine.parse("every day", ANCHOR)

        assert engine.occurrences_between(rule, _utc(2023, 12, 1), _utc(2024, 1, 1)) == []

    def test_naive_window_bounds_are_utc(self, engine):
        """Should interpret naive window bounds as UTC."""
        rule = engine.parse("every day", ANCHOR)

        occurrences = engine.occurrences_between(rule, datetime(2024, 1, 1), datetime(2024, 1, 3))

        assert occurrences == [_utc(2024, 1, 1, 10), _utc(2024, 1, 2, 10)]

    def test_max_occurrences_cap(self, caplog):
        """Should stop at max_occurrences and log a warning."""
        engine = RuleEngine(max_occurrences=5)
        rule = engine.parse("every hour", ANCHOR)

        occurrences = engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 1, 2))

        assert len(occurrences) == 5
        assert "truncated" in caplog.text


class TestModuleHelpers:
    """Module-level convenience functions."""

    def test_parse_pattern_and_occurrences_between(self):
        """Should use a default engine."""
        rule = rrule_engine.parse_pattern("every week", ANCHOR)

        assert isinstance(rule, RecurrenceRule)
        assert rrule_engine.occurrences_between(rule, _utc(2024, 1, 1), _utc(2024, 1, 9)) == [
            _utc(2024, 1, 1, 10),
            _utc(2024, 1, 8, 10),
        ]
