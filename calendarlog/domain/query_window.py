"""Query selectors and the canonical windows they map to."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from calendarlog.core.time_utils import parse_instant
from calendarlog.exceptions import QueryValidationError


@dataclass(frozen=True)
class QueryWindow:
    """Half-open query window ``[start, end)``."""

    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start


class QuerySelector(BaseModel):
    """Granularity selector: ``{year}``, ``{year, month}``,
    ``{year, month, day}`` or ``{start_date_utc, end_date_utc}``.

    Months and days are 1-based.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    start_date_utc: Optional[datetime] = None
    end_date_utc: Optional[datetime] = None

    @field_validator("start_date_utc", "end_date_utc", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any) -> Optional[datetime]:
        if value is None:
            return None
        return parse_instant(value)

    @property
    def granularity(self) -> str:
        """One of ``day``, ``month``, ``year`` or ``range``.

        Raises:
            QueryValidationError: If the fields do not form a known selector
        """
        has_range = self.start_date_utc is not None or self.end_date_utc is not None
        has_date = self.year is not None or self.month is not None or self.day is not None
        if has_range and has_date:
            raise QueryValidationError("Selector mixes a date and an explicit range")
        if has_range:
            if self.start_date_utc is None or self.end_date_utc is None:
                raise QueryValidationError("Explicit range needs both start and end")
            return "range"
        if self.year is None:
            raise QueryValidationError("Selector needs a year or an explicit range")
        if self.day is not None:
            if self.month is None:
                raise QueryValidationError("Selector with a day needs a month")
            return "day"
        if self.month is not None:
            return "month"
        return "year"


def compute_window(selector: QuerySelector) -> QueryWindow:
    """Map a selector to its canonical window.

    Day: midnight to midnight + 1 day. Month: first of month to + 1 month.
    Year: Jan 1 to + 1 year. Explicit ranges are used verbatim.

    Raises:
        QueryValidationError: If the selector is incomplete or not a real date
    """
    granularity = selector.granularity

    if granularity == "range":
        assert selector.start_date_utc is not None and selector.end_date_utc is not None
        if selector.end_date_utc < selector.start_date_utc:
            raise QueryValidationError("Explicit range ends before it starts")
        return QueryWindow(selector.start_date_utc, selector.end_date_utc)

    assert selector.year is not None
    try:
        month = 1 if selector.month is None else selector.month
        day = 1 if selector.day is None else selector.day
        start = datetime(selector.year, month, day, tzinfo=UTC)
    except ValueError as e:
        raise QueryValidationError(f"Invalid date in selector: {e}") from e

    step = {
        "day": relativedelta(days=1),
        "month": relativedelta(months=1),
        "year": relativedelta(years=1),
    }[granularity]
    try:
        end = start + step
    except (ValueError, OverflowError) as e:
        raise QueryValidationError(f"Window past supported range: {e}") from e
    return QueryWindow(start, end)
