"""Calendar mutations: append records to the log and manage reminders."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Union

from calendarlog.calendar.models import CalendarEvent, DeleteEventRecord, SetEventParams, SetEventRecord
from calendarlog.core.interfaces import EventLog, JobScheduler, ResourceAllocator

logger = logging.getLogger(__name__)

NOTIFY_ACTION = "notify"


def reminder_key(event_id: str) -> str:
    """Dedupe key of the reminder job for an event."""
    return f"reminder_{event_id}"


class CalendarActions:
    """Write side of the calendar.

    ``set_event`` appends a SET_EVENT record and (re)schedules a reminder
    ``notification_offset`` before the event start; ``delete_event`` appends
    a DELETE_EVENT record and cancels the reminder. For recurring events the
    reminder targets the template's reference occurrence.
    """

    def __init__(
        self,
        event_log: EventLog,
        scheduler: JobScheduler,
        allocator: ResourceAllocator,
        notification_offset: timedelta = timedelta(minutes=30),
    ) -> None:
        self.event_log = event_log
        self.scheduler = scheduler
        self.allocator = allocator
        self.notification_offset = notification_offset

    def register(self) -> None:
        """Register the reminder action with the scheduler."""
        self.scheduler.register_action(NOTIFY_ACTION, self.notify)

    async def set_event(self, params: Union[SetEventParams, Mapping[str, Any]]) -> CalendarEvent:
        """Create or wholly replace an event.

        Args:
            params: SetEventParams or a mapping validated into one

        Returns:
            The stored event

        Raises:
            pydantic.ValidationError: If ``params`` is a mapping that fails validation
        """
        if not isinstance(params, SetEventParams):
            params = SetEventParams.model_validate(params)

        event_id = params.id or self.allocator.allocate_id()
        event = params.to_event(event_id)
        record = SetEventRecord(event=event)

        payload = {k: v for k, v in record.to_wire().items() if k != "type"}
        await self.event_log.append_record(record.TYPE.value, payload, {"resourceId": event_id})
        logger.info("Set event %s (%s)", event_id, event.title)

        notify_at = event.start_date_utc - self.notification_offset
        self.scheduler.schedule(NOTIFY_ACTION, event.to_wire(), notify_at, reminder_key(event_id))
        return event

    async def delete_event(self, event_id: str) -> str:
        """Delete an event by id; deleting an unknown id is harmless.

        Returns:
            The event id
        """
        record = DeleteEventRecord(event_id=event_id)
        payload = {k: v for k, v in record.to_wire().items() if k != "type"}
        await self.event_log.append_record(record.TYPE.value, payload, {"resourceId": event_id})
        self.scheduler.unschedule(reminder_key(event_id))
        logger.info("Deleted event %s", event_id)
        return event_id

    async def notify(self, payload: Any) -> str:
        """Reminder action fired by the scheduler."""
        logger.info("UPCOMING EVENT: %s", json.dumps(payload, default=str, sort_keys=True))
        return "notified"
