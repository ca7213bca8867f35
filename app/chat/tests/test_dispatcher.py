"""
Tests for the event fan-out dispatcher.

A recording channel layer stands in for Redis so that the exact set of
sends can be asserted.
"""

import pytest

from chat import events
from chat.dispatcher import EventDispatcher, get_event_dispatcher
from chat.events import OutboundEvent
from chat.presence import InMemoryPresenceRegistry
from chat.rooms import RoomRouter, conversation_scope, personal_scope


class RecordingLayer:
    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    async def send(self, channel, message):
        if channel in self.failing:
            raise ConnectionError(f"{channel} unreachable")
        self.sent.append((channel, message))


@pytest.fixture
def registry():
    return InMemoryPresenceRegistry()


@pytest.fixture
def router():
    return RoomRouter()


@pytest.fixture
def layer():
    return RecordingLayer()


@pytest.fixture
def dispatcher(registry, router, layer):
    return EventDispatcher(registry, router, channel_layer=layer)


def connect(registry, router, session_id, user_id):
    registry.register(session_id, user_id)
    router.join(personal_scope(user_id), session_id)


class TestResolve:
    def test_session_in_several_scopes_resolved_once(self, dispatcher, registry, router):
        connect(registry, router, "a1", 1)
        router.join(conversation_scope(5), "a1")

        sessions = dispatcher.resolve(events.new_message(5, [1], {}))

        assert sessions == ["a1"]

    def test_excluded_user_loses_every_session(self, dispatcher, registry, router):
        connect(registry, router, "a1", 1)
        connect(registry, router, "a2", 1)
        connect(registry, router, "b1", 2)
        for session_id in ("a1", "a2", "b1"):
            router.join(conversation_scope(5), session_id)

        sessions = dispatcher.resolve(events.user_typing(5, 1, "Alice", True))

        assert sessions == ["b1"]

    def test_broadcast_all_reaches_every_session(self, dispatcher, registry, router):
        connect(registry, router, "a1", 1)
        connect(registry, router, "b1", 2)

        sessions = dispatcher.resolve(
            events.user_status_change({"user_id": 3, "status": "online"}, exclude_user=3)
        )

        assert set(sessions) == {"a1", "b1"}

    def test_explicit_sessions(self, dispatcher):
        event = OutboundEvent(name="x", payload={}, sessions=("s9",))

        assert dispatcher.resolve(event) == ["s9"]

    def test_empty_scope_resolves_to_nothing(self, dispatcher):
        assert dispatcher.resolve(events.new_message(404, [], {})) == []


class TestPublish:
    @pytest.mark.asyncio
    async def test_sends_chat_event_to_each_session(self, dispatcher, registry, router, layer):
        connect(registry, router, "a1", 1)
        connect(registry, router, "b1", 2)

        delivered = await dispatcher.publish(events.new_message(5, [1, 2], {"id": 1}))

        assert delivered == 2
        assert sorted(channel for channel, _ in layer.sent) == ["a1", "b1"]
        assert layer.sent[0][1] == {
            "type": "chat.event",
            "event": "new_message",
            "data": {"id": 1},
        }

    @pytest.mark.asyncio
    async def test_failed_send_does_not_block_others(self, registry, router):
        layer = RecordingLayer(failing={"a1"})
        dispatcher = EventDispatcher(registry, router, channel_layer=layer)
        connect(registry, router, "a1", 1)
        connect(registry, router, "b1", 2)

        delivered = await dispatcher.publish(events.new_message(5, [1, 2], {}))

        assert delivered == 1
        assert [channel for channel, _ in layer.sent] == ["b1"]

    @pytest.mark.asyncio
    async def test_no_recipients_sends_nothing(self, dispatcher, layer):
        assert await dispatcher.publish(events.new_message(5, [], {})) == 0
        assert layer.sent == []

    @pytest.mark.asyncio
    async def test_publish_many_keeps_order(self, dispatcher, registry, router, layer):
        connect(registry, router, "a1", 1)

        await dispatcher.publish_many(
            [
                events.new_message(5, [1], {"id": 1}),
                events.message_deleted(5, [1], 1),
            ]
        )

        assert [message["event"] for _, message in layer.sent] == [
            "new_message",
            "message_deleted",
        ]


class TestBackgroundTasks:
    @pytest.mark.asyncio
    async def test_drain_waits_for_tasks(self, dispatcher):
        done = []

        async def work():
            done.append(True)

        dispatcher.run_in_background(work(), "work")
        await dispatcher.drain()

        assert done == [True]

    @pytest.mark.asyncio
    async def test_failing_task_is_logged(self, dispatcher, caplog):
        async def boom():
            raise RuntimeError("db down")

        dispatcher.run_in_background(boom(), "record status")
        await dispatcher.drain()

        assert "record status" in caplog.text


class TestProvider:
    def test_dispatcher_shares_process_registries(self):
        from chat.presence import get_presence_registry
        from chat.rooms import get_room_router

        dispatcher = get_event_dispatcher()

        assert dispatcher.registry is get_presence_registry()
        assert dispatcher.router is get_room_router()
