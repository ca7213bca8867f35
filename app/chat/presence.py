"""
Presence registry: which users are connected, through which sessions.

A session is one authenticated WebSocket connection, identified by its
channel name. A user is online exactly while they own at least one session,
so a second device connecting or one of several devices disconnecting does
not change the user's visible status.

Classes:
    PresenceTransition: Result of a status-changing registry call
    PresenceRegistry: Interface used by the dispatcher and signaling relay
    InMemoryPresenceRegistry: Single-process implementation

Design Decisions:
    - The registry owns no persistence. Callers schedule durable writes
      (authentication.services.UserStatusService) after broadcasting.
    - Mutations happen only from coroutines on the ASGI event loop and
      never await, so each call is atomic with respect to other events.
    - The implementation is chosen by settings.CHAT_REALTIME["PRESENCE_REGISTRY"].
      A shared store (Redis pub/sub) implementation can be plugged in for
      multi-instance deployments without touching callers.

Usage:
    from chat.presence import get_presence_registry

    registry = get_presence_registry()
    transition = registry.register(channel_name, user.id)
    if transition:
        ...  # first session: broadcast user_status_change online
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Hashable
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from authentication.models import UserStatus

logger = logging.getLogger(__name__)

UserId = Hashable


@dataclass(frozen=True)
class PresenceTransition:
    """
    A change in a user's visible status.

    Attributes:
        user_id: Subject user
        status: New status (online, offline, away, busy)
        at: When the transition happened; last_seen for offline transitions
    """

    user_id: UserId
    status: str
    at: datetime = field(default_factory=timezone.now)

    @property
    def is_offline(self) -> bool:
        return self.status == UserStatus.OFFLINE

    def as_payload(self) -> dict:
        """Wire payload for the user_status_change event."""
        payload = {"user_id": self.user_id, "status": self.status}
        if self.is_offline:
            payload["last_seen"] = self.at.isoformat()
        return payload


class PresenceRegistry(ABC):
    """
    Interface for tracking user sessions.

    Implementations must guarantee that for every user u:
    is_online(u) == (len(sessions_for(u)) > 0).
    """

    @abstractmethod
    def register(self, session_id: str, user_id: UserId) -> PresenceTransition | None:
        """Add a session. Returns an online transition on the user's first session."""

    @abstractmethod
    def deregister(self, session_id: str) -> PresenceTransition | None:
        """Remove a session. Returns an offline transition on the user's last session."""

    @abstractmethod
    def set_status(self, user_id: UserId, status: str) -> PresenceTransition | None:
        """Record an explicit status for an online user."""

    @abstractmethod
    def is_online(self, user_id: UserId) -> bool: ...

    @abstractmethod
    def sessions_for(self, user_id: UserId) -> frozenset[str]: ...

    @abstractmethod
    def user_for(self, session_id: str) -> UserId | None: ...

    @abstractmethod
    def status_for(self, user_id: UserId) -> str: ...

    @abstractmethod
    def all_online_user_ids(self) -> frozenset: ...

    @abstractmethod
    def all_sessions(self) -> frozenset[str]: ...


class InMemoryPresenceRegistry(PresenceRegistry):
    """
    Presence registry kept in process memory.

    Holds two maps kept in lockstep:
        user id -> set of session ids
        session id -> user id
    plus the explicit status of users who picked away/busy.
    """

    def __init__(self):
        self._sessions_by_user: dict[UserId, set[str]] = {}
        self._user_by_session: dict[str, UserId] = {}
        self._status_by_user: dict[UserId, str] = {}

    def register(self, session_id: str, user_id: UserId) -> PresenceTransition | None:
        previous = self._user_by_session.get(session_id)
        if previous == user_id:
            return None
        if previous is not None:
            # A session id is never reused by a different user in practice;
            # keep the maps consistent if it happens anyway.
            self.deregister(session_id)

        sessions = self._sessions_by_user.setdefault(user_id, set())
        first = not sessions
        sessions.add(session_id)
        self._user_by_session[session_id] = user_id

        if first:
            self._status_by_user[user_id] = UserStatus.ONLINE
            logger.debug(f"User {user_id} online (session {session_id})")
            return PresenceTransition(user_id=user_id, status=UserStatus.ONLINE)
        return None

    def deregister(self, session_id: str) -> PresenceTransition | None:
        user_id = self._user_by_session.pop(session_id, None)
        if user_id is None:
            return None

        sessions = self._sessions_by_user.get(user_id)
        if sessions is not None:
            sessions.discard(session_id)
            if sessions:
                return None
            del self._sessions_by_user[user_id]

        self._status_by_user.pop(user_id, None)
        logger.debug(f"User {user_id} offline (last session {session_id})")
        return PresenceTransition(user_id=user_id, status=UserStatus.OFFLINE)

    def set_status(self, user_id: UserId, status: str) -> PresenceTransition | None:
        if not self.is_online(user_id):
            return None
        self._status_by_user[user_id] = status
        return PresenceTransition(user_id=user_id, status=status)

    def is_online(self, user_id: UserId) -> bool:
        return bool(self._sessions_by_user.get(user_id))

    def sessions_for(self, user_id: UserId) -> frozenset[str]:
        return frozenset(self._sessions_by_user.get(user_id, ()))

    def user_for(self, session_id: str) -> UserId | None:
        return self._user_by_session.get(session_id)

    def status_for(self, user_id: UserId) -> str:
        if not self.is_online(user_id):
            return UserStatus.OFFLINE
        return self._status_by_user.get(user_id, UserStatus.ONLINE)

    def all_online_user_ids(self) -> frozenset:
        return frozenset(self._sessions_by_user)

    def all_sessions(self) -> frozenset[str]:
        return frozenset(self._user_by_session)


@lru_cache(maxsize=1)
def get_presence_registry() -> PresenceRegistry:
    """
    Process-wide registry built from settings.

    Tests reset it with get_presence_registry.cache_clear().
    """
    path = settings.CHAT_REALTIME["PRESENCE_REGISTRY"]
    return import_string(path)()
