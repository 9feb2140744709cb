"""Data models for calendar events and the mutation records that build them."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from calendarlog.core.time_utils import format_instant, parse_instant
from calendarlog.exceptions import MalformedRecordError, UnknownMutationTagError


class MutationType(str, Enum):
    """Tags carried by records in the mutation log."""

    SET_EVENT = "SET_EVENT"
    DELETE_EVENT = "DELETE_EVENT"


class CalendarEvent(BaseModel):
    """A stored calendar event, or the template of a recurring series.

    For recurring events the start/end denote the reference occurrence and
    ``duration`` (minutes) is what occurrences are sized by.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str = Field(..., min_length=1, description="Stable event id, unique within the store")
    title: str = Field(..., description="Event title")
    description: str = Field(default="", description="Opaque description text")

    start_date_utc: datetime = Field(..., description="Start instant (UTC)")
    end_date_utc: datetime = Field(..., description="End instant (UTC)")
    duration: int = Field(..., ge=0, description="Duration in minutes")

    is_recurring: bool = Field(default=False, description="Recurring template flag")
    recurrence_pattern: str = Field(default="", description="Recurrence rule, used when is_recurring")

    @field_validator("start_date_utc", "end_date_utc", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any) -> datetime:
        return parse_instant(value)

    @field_validator("description", "recurrence_pattern", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_serializer("start_date_utc", "end_date_utc")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize instants to ISO-8601 UTC."""
        return format_instant(dt)

    @property
    def duration_delta(self) -> timedelta:
        """Duration as a timedelta."""
        return timedelta(minutes=self.duration)

    def to_wire(self) -> dict[str, Any]:
        """JSON-safe camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


class SetEventRecord(BaseModel):
    """Upsert ``event`` by its id; replacement is total."""

    TYPE: ClassVar[MutationType] = MutationType.SET_EVENT

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    event: CalendarEvent

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.TYPE.value, **self.model_dump(mode="json", by_alias=True)}


class DeleteEventRecord(BaseModel):
    """Remove the event with ``event_id``; a no-op when absent."""

    TYPE: ClassVar[MutationType] = MutationType.DELETE_EVENT

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    event_id: str = Field(..., min_length=1)

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.TYPE.value, **self.model_dump(mode="json", by_alias=True)}


MutationRecord = Union[SetEventRecord, DeleteEventRecord]

_RECORD_TYPES: dict[str, type[BaseModel]] = {
    MutationType.SET_EVENT.value: SetEventRecord,
    MutationType.DELETE_EVENT.value: DeleteEventRecord,
}


def parse_record(raw: Any) -> MutationRecord:
    """Validate a raw log record into a typed mutation record.

    Args:
        raw: Record model or mapping with a ``type`` tag, e.g.
            ``{"type": "DELETE_EVENT", "eventId": "e1"}``

    Returns:
        SetEventRecord or DeleteEventRecord

    Raises:
        UnknownMutationTagError: If the tag is not a known mutation type
        MalformedRecordError: If the record is not a mapping or its payload is invalid
    """
    if isinstance(raw, (SetEventRecord, DeleteEventRecord)):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"Record must be a mapping, got {type(raw).__name__}", raw)

    tag = raw.get("type")
    if isinstance(tag, Enum):
        tag = tag.value
    record_cls = _RECORD_TYPES.get(tag) if isinstance(tag, str) else None
    if record_cls is None:
        raise UnknownMutationTagError(tag, raw)

    payload = {k: v for k, v in raw.items() if k != "type"}
    try:
        return record_cls.model_validate(payload)  # type: ignore[return-value]
    except ValidationError as e:
        raise MalformedRecordError(f"Invalid {tag} record: {e.error_count()} validation error(s)", raw) from e


class SetEventParams(BaseModel):
    """Input for creating or replacing an event.

    ``id`` is allocated when omitted. One of ``end_date_utc`` / ``duration``
    must be given; the other is derived from it.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: Optional[str] = None
    title: str
    description: str = ""
    start_date_utc: datetime
    end_date_utc: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)
    is_recurring: bool = False
    recurrence_pattern: str = ""

    @field_validator("start_date_utc", "end_date_utc", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any) -> Optional[datetime]:
        if value is None:
            return None
        return parse_instant(value)

    @model_validator(mode="after")
    def _check_span(self) -> SetEventParams:
        if self.end_date_utc is None and self.duration is None:
            raise ValueError("Either end_date_utc or duration is required")
        if self.duration is None and self.end_date_utc is not None and self.end_date_utc < self.start_date_utc:
            raise ValueError("end_date_utc must not be before start_date_utc")
        return self

    def to_event(self, event_id: str) -> CalendarEvent:
        """Build the stored event, deriving whichever of end/duration is missing."""
        if self.duration is not None:
            duration = self.duration
            end = self.end_date_utc or self.start_date_utc + timedelta(minutes=duration)
        else:
            assert self.end_date_utc is not None
            end = self.end_date_utc
            duration = int((end - self.start_date_utc).total_seconds() // 60)
        return CalendarEvent(
            id=event_id,
            title=self.title,
            description=self.description,
            start_date_utc=self.start_date_utc,
            end_date_utc=end,
            duration=duration,
            is_recurring=self.is_recurring,
            recurrence_pattern=self.recurrence_pattern,
        )
