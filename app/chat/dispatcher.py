"""
Event fan-out dispatcher.

Resolves an OutboundEvent to the set of sessions that should receive it
and sends it to each session's channel through the Channels layer. Each
session then forwards the event to its socket in ChatConsumer.chat_event().

Design Decisions:
    - Target resolution reads the presence registry and room router
      synchronously, so the session set is a consistent snapshot.
    - Each session receives an event at most once, even when it is
      reachable through several scopes.
    - Sends run concurrently; a failed send is logged and never reported
      back to the initiating client.
    - Durable side effects of presence transitions run as background
      tasks tracked here, so a slow database write never delays delivery.

Usage:
    # From async code (consumers)
    await get_event_dispatcher().publish(event)

    # From sync code (REST views)
    publish_event(event)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from functools import lru_cache

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import REALTIME_CONFIG
from chat.events import OutboundEvent
from chat.presence import PresenceRegistry, get_presence_registry
from chat.rooms import RoomRouter, get_room_router

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Delivers outbound events to sessions.

    Args:
        registry: Presence registry used for user and broadcast targets
        router: Room router used for scope targets
        channel_layer: Channels layer; defaults to the configured layer
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        router: RoomRouter,
        channel_layer=None,
    ):
        self.registry = registry
        self.router = router
        self._channel_layer = channel_layer
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def channel_layer(self):
        if self._channel_layer is not None:
            return self._channel_layer
        return get_channel_layer()

    def resolve(self, event: OutboundEvent) -> list[str]:
        """
        Compute the recipient sessions of an event.

        Returns:
            Session ids in first-seen order, without duplicates
        """
        targets: dict[str, None] = {}

        if event.broadcast_all:
            for session_id in sorted(self.registry.all_sessions()):
                targets[session_id] = None

        for scope in event.scopes:
            for session_id in sorted(self.router.sessions_in(scope)):
                targets[session_id] = None

        for session_id in event.sessions:
            targets[session_id] = None

        excluded = set(event.exclude_sessions)
        for user_id in event.exclude_users:
            excluded.update(self.registry.sessions_for(user_id))

        return [session_id for session_id in targets if session_id not in excluded]

    async def publish(self, event: OutboundEvent) -> int:
        """
        Send an event to every resolved session.

        Returns:
            Number of sessions the event was successfully handed to
        """
        sessions = self.resolve(event)
        if not sessions:
            logger.debug(f"No recipients for {event.name}")
            return 0

        message = {
            "type": REALTIME_CONFIG.EVENT_MESSAGE_TYPE,
            "event": event.name,
            "data": event.payload,
        }
        results = await asyncio.gather(
            *(self.channel_layer.send(session_id, message) for session_id in sessions),
            return_exceptions=True,
        )

        delivered = 0
        for session_id, result in zip(sessions, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Failed to deliver {event.name} to {session_id}: {result!r}"
                )
            else:
                delivered += 1
        return delivered

    async def publish_many(self, events: Iterable[OutboundEvent]) -> None:
        """Publish events in order."""
        for event in events:
            await self.publish(event)

    def run_in_background(self, awaitable: Awaitable, description: str) -> asyncio.Task:
        """
        Schedule a fire-and-forget coroutine on the running loop.

        Failures are logged with the given description and otherwise ignored.
        """
        task = asyncio.ensure_future(awaitable)
        self._background_tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._background_tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error(f"Background task failed ({description}): {exc!r}")

        task.add_done_callback(_done)
        return task

    async def drain(self) -> None:
        """Wait for outstanding background tasks (used at shutdown and in tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)


@lru_cache(maxsize=1)
def get_event_dispatcher() -> EventDispatcher:
    """Process-wide dispatcher wired to the configured registry and router."""
    return EventDispatcher(get_presence_registry(), get_room_router())


def publish_event(event: OutboundEvent) -> int:
    """Synchronous entry point for views and other sync code."""
    return async_to_sync(get_event_dispatcher().publish)(event)
