"""Unit tests for query selectors and window computation."""

from datetime import UTC, datetime

import pytest

from calendarlog.domain.query_window import QuerySelector, QueryWindow, compute_window
from calendarlog.exceptions import QueryValidationError

pytestmark = pytest.mark.unit


def _utc(*args):
    return datetime(*args, tzinfo=UTC)


class TestComputeWindow:
    """Tests for compute_window."""

    def test_day_window(self):
        """Should span midnight to the next midnight."""
        window = compute_window(QuerySelector(year=2024, month=3, day=4))

        assert window == QueryWindow(_utc(2024, 3, 4), _utc(2024, 3, 5))

    def test_day_window_crosses_month_end(self):
        """Should roll over to the next month on the last day."""
        window = compute_window(QuerySelector(year=2024, month=2, day=29))

        assert window == QueryWindow(_utc(2024, 2, 29), _utc(2024, 3, 1))

    def test_month_window(self):
        """Should span the first of the month to the first of the next month."""
        window = compute_window(QuerySelector(year=2024, month=12))

        assert window == QueryWindow(_utc(2024, 12, 1), _utc(2025, 1, 1))

    def test_year_window(self):
        """Should span January 1 to January 1 of the next year."""
        window = compute_window(QuerySelector(year=2024))

        assert window == QueryWindow(_utc(2024, 1, 1), _utc(2025, 1, 1))

    def test_explicit_range_used_verbatim(self):
        """Should use an explicit range as given."""
        selector = QuerySelector.model_validate(
            {"startDateUtc": "2024-03-04T09:30:00Z", "endDateUtc": "2024-03-04T17:00:00+01:00"}
        )

        window = compute_window(selector)

        assert window == QueryWindow(_utc(2024, 3, 4, 9, 30), _utc(2024, 3, 4, 16))

    def test_empty_explicit_range_allowed(self):
        """Should allow an empty range where end equals start."""
        window = compute_window(QuerySelector(start_date_utc=_utc(2024, 1, 1), end_date_utc=_utc(2024, 1, 1)))

        assert window.is_empty

    @pytest.mark.parametrize(
        "fields",
        [
            {"year": 2024, "month": 2, "day": 30},
            {"year": 2024, "month": 13},
            {"year": 2024, "month": 0},
            {"year": 2024, "day": 4},
            {"month": 3},
            {},
            {"year": 2024, "start_date_utc": _utc(2024, 1, 1), "end_date_utc": _utc(2024, 2, 1)},
            {"start_date_utc": _utc(2024, 1, 1)},
            {"start_date_utc": _utc(2024, 2, 1), "end_date_utc": _utc(2024, 1, 1)},
        ],
    )
    def test_invalid_selectors(self, fields):
        """Should raise QueryValidationError for selectors that do not form a window."""
        with pytest.raises(QueryValidationError):
            compute_window(QuerySelector(**fields))


class TestGranularity:
    """Tests for QuerySelector.granularity."""

    @pytest.mark.parametrize(
        ("fields", "expected"),
        [
            ({"year": 2024}, "year"),
            ({"year": 2024, "month": 3}, "month"),
            ({"year": 2024, "month": 3, "day": 4}, "day"),
            ({"start_date_utc": "2024-01-01T00:00Z", "end_date_utc": "2024-01-02T00:00Z"}, "range"),
        ],
    )
    def test_granularity(self, fields, expected):
        """Should name the selector's granularity."""
        assert QuerySelector(**fields).granularity == expected
