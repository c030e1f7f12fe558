"""Tests for state synchronization and the event bus."""

import asyncio

import pytest

from teams_local.events import EventBus, EventType
from teams_local.protocol.messages import MeetingPermissions, MeetingState, MeetingUpdate
from teams_local.state import ALL_FIELDS, StateSynchronizer


def _update(**state) -> MeetingUpdate:
    return MeetingUpdate(meeting_state=MeetingState(**state))


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def changes(bus):
    seen = []
    bus.on(EventType.STATE_CHANGED, lambda e: seen.append((e.data["field"], e.data["value"])))
    return seen


class TestStateSynchronizer:
    def test_starts_all_false(self, bus):
        sync = StateSynchronizer(bus)
        assert set(sync.snapshot()) == set(ALL_FIELDS)
        assert not any(sync.snapshot().values())

    def test_same_snapshot_twice(self, bus, changes):
        sync = StateSynchronizer(bus)
        update = _update(is_muted=True, is_in_meeting=True)
        sync.apply(update)
        assert len(changes) == 2
        assert sync.apply(update) == []
        assert len(changes) == 2

    def test_one_field_differs(self, bus, changes):
        sync = StateSynchronizer(bus)
        sync.apply(_update(is_muted=True, is_video_on=True))
        changes.clear()
        sync.apply(_update(is_muted=False, is_video_on=True))
        assert changes == [("is_muted", False)]

    def test_absent_fields_keep_value(self, bus):
        sync = StateSynchronizer(bus)
        sync.apply(_update(is_muted=True))
        sync.apply(_update(is_video_on=True))
        assert sync.get("is_muted") is True
        assert sync.get("is_video_on") is True

    def test_false_is_not_a_change_initially(self, bus, changes):
        sync = StateSynchronizer(bus)
        sync.apply(_update(is_muted=False))
        assert changes == []

    def test_permissions(self, bus, changes):
        sync = StateSynchronizer(bus)
        sync.apply(MeetingUpdate(meeting_permissions=MeetingPermissions(can_react=True)))
        assert changes == [("can_react", True)]
        assert sync.get("can_react") is True

    def test_listener_can_read_snapshot(self, bus):
        sync = StateSynchronizer(bus)
        observed = []
        bus.on(EventType.STATE_CHANGED, lambda e: observed.append(sync.get(e.data["field"])))
        sync.apply(_update(is_hand_raised=True))
        assert observed == [True]


class TestEventBus:
    def test_specific_then_wildcard(self, bus):
        order = []
        bus.on_all(lambda e: order.append("all"))
        bus.on(EventType.CONNECTED, lambda e: order.append("connected"))
        bus.emit(EventType.CONNECTED)
        assert order == ["connected", "all"]

    def test_other_types_not_delivered(self, bus):
        seen = []
        bus.on(EventType.CONNECTED, seen.append)
        bus.emit(EventType.DISCONNECTED)
        assert seen == []

    def test_event_payload(self, bus):
        event = bus.emit(EventType.TOKEN_RECEIVED, token="abc")
        assert event.type is EventType.TOKEN_RECEIVED
        assert event.data == {"token": "abc"}

    def test_failing_listener_is_isolated(self, bus):
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.on(EventType.CONNECTED, broken)
        bus.on(EventType.CONNECTED, seen.append)
        bus.emit(EventType.CONNECTED)
        assert len(seen) == 1

    def test_off(self, bus):
        seen = []
        bus.on(EventType.CONNECTED, seen.append)
        bus.off(EventType.CONNECTED, seen.append)
        bus.off(EventType.CONNECTED, seen.append)
        bus.emit(EventType.CONNECTED)
        assert seen == []

    @pytest.mark.asyncio
    async def test_async_listener_is_scheduled(self, bus):
        seen = []

        async def listener(event):
            seen.append(event.type)

        bus.on(EventType.DISCONNECTED, listener)
        bus.emit(EventType.DISCONNECTED)
        assert seen == []
        await asyncio.sleep(0)
        assert seen == [EventType.DISCONNECTED]
