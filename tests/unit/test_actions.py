"""Unit tests for CalendarActions."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from calendarlog.calendar.models import SetEventParams
from calendarlog.core.resources import UuidResourceAllocator
from calendarlog.domain.actions import NOTIFY_ACTION, CalendarActions, reminder_key

pytestmark = pytest.mark.unit


class FakeScheduler:
    """Scheduler double recording calls."""

    def __init__(self):
        self.actions = {}
        self.scheduled = {}
        self.unscheduled = []

    def register_action(self, action_name, handler):
        self.actions[action_name] = handler

    def schedule(self, action_name, payload, when_utc, dedupe_key):
        self.scheduled[dedupe_key] = (action_name, payload, when_utc)

    def unschedule(self, dedupe_key):
        self.unscheduled.append(dedupe_key)
        self.scheduled.pop(dedupe_key, None)


class FixedAllocator:
    def __init__(self, *ids):
        self.ids = list(ids)

    def allocate_id(self):
        return self.ids.pop(0)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def actions(event_log, scheduler):
    actions = CalendarActions(event_log, scheduler, FixedAllocator("gen-1", "gen-2"))
    actions.register()
    return actions


class TestSetEvent:
    @pytest.mark.asyncio
    async def test_appends_record_with_meta(self, actions, event_log):
        """Should append a SET_EVENT record tagged with the resource id."""
        event = await actions.set_event(
            {"id": "e1", "title": "Standup", "startDateUtc": "2024-03-04T09:00Z", "endDateUtc": "2024-03-04T09:15Z"}
        )

        entry = event_log.entries[0]
        assert entry.record == {"type": "SET_EVENT", "event": event.to_wire()}
        assert entry.meta == {"resourceId": "e1"}
        assert event.duration == 15

    @pytest.mark.asyncio
    async def test_allocates_missing_id(self, actions, event_log):
        """Should allocate an id when none is given."""
        event = await actions.set_event(
            SetEventParams(title="Review", start_date_utc="2024-03-04T10:00Z", duration=30)
        )

        assert event.id == "gen-1"
        assert set(await event_log.get_current_snapshot("events")) == {"gen-1"}

    @pytest.mark.asyncio
    async def test_schedules_reminder_before_start(self, actions, scheduler):
        """Should schedule the notify action thirty minutes before the start."""
        event = await actions.set_event(
            {"id": "e1", "title": "Standup", "startDateUtc": "2024-03-04T09:00Z", "duration": 15}
        )

        action_name, payload, when = scheduler.scheduled[reminder_key("e1")]
        assert action_name == NOTIFY_ACTION
        assert payload == event.to_wire()
        assert when == datetime(2024, 3, 4, 8, 30, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_custom_offset(self, event_log, scheduler):
        """Should honour a configured notification offset."""
        actions = CalendarActions(event_log, scheduler, UuidResourceAllocator(), timedelta(minutes=5))

        await actions.set_event({"id": "e1", "title": "T", "startDateUtc": "2024-03-04T09:00Z", "duration": 15})

        assert scheduler.scheduled["reminder_e1"][2] == datetime(2024, 3, 4, 8, 55, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_invalid_params(self, actions, event_log):
        """Should reject invalid params without appending."""
        with pytest.raises(ValidationError):
            await actions.set_event({"title": "No span", "startDateUtc": "2024-03-04T09:00Z"})

        assert event_log.entries == ()


class TestDeleteEvent:
    @pytest.mark.asyncio
    async def test_appends_delete_and_unschedules(self, actions, event_log, scheduler):
        """Should append DELETE_EVENT and cancel the reminder."""
        await actions.set_event({"id": "e1", "title": "T", "startDateUtc": "2024-03-04T09:00Z", "duration": 15})

        result = await actions.delete_event("e1")

        assert result == "e1"
        assert event_log.entries[-1].record == {"type": "DELETE_EVENT", "eventId": "e1"}
        assert event_log.entries[-1].meta == {"resourceId": "e1"}
        assert scheduler.unscheduled == ["reminder_e1"]
        assert dict(await event_log.get_current_snapshot("events")) == {}

    @pytest.mark.asyncio
    async def test_delete_unknown_is_harmless(self, actions, event_log):
        """Should append the record even when the id is unknown."""
        assert await actions.delete_event("ghost") == "ghost"
        assert dict(await event_log.get_current_snapshot("events")) == {}


class TestNotify:
    def test_register(self, actions, scheduler):
        """Should register notify with the scheduler."""
        assert scheduler.actions[NOTIFY_ACTION] == actions.notify

    @pytest.mark.asyncio
    async def test_notify_logs_payload(self, actions, caplog):
        """Should log the upcoming event and report success."""
        caplog.set_level("INFO")

        assert await actions.notify({"title": "Standup"}) == "notified"
        assert "UPCOMING EVENT" in caplog.text
        assert "Standup" in caplog.text


class TestUuidResourceAllocator:
    def test_unique_prefixed_ids(self):
        """Should hand out distinct ids carrying the prefix."""
        allocator = UuidResourceAllocator(prefix="evt_")

        first, second = allocator.allocate_id(), allocator.allocate_id()

        assert first != second
        assert first.startswith("evt_")
