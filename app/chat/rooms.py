"""
Room router: named broadcast scopes and the sessions subscribed to them.

Scopes:
    conversation:<id>  joined on join_chat, left on leave_chat or disconnect
    user:<id>          personal scope, joined automatically on connect

Authorization is not checked here. The consumer verifies membership
once, when a session asks to join a conversation scope.

Usage:
    from chat.rooms import conversation_scope, get_room_router

    router = get_room_router()
    router.join(conversation_scope(42), channel_name)
    router.sessions_in(conversation_scope(42))
"""

from __future__ import annotations

import logging
from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

from chat.constants import REALTIME_CONFIG

logger = logging.getLogger(__name__)


def conversation_scope(conversation_id) -> str:
    return f"{REALTIME_CONFIG.CONVERSATION_SCOPE_PREFIX}:{conversation_id}"


def personal_scope(user_id) -> str:
    return f"{REALTIME_CONFIG.PERSONAL_SCOPE_PREFIX}:{user_id}"


class RoomRouter:
    """
    In-memory scope membership.

    Two maps kept in lockstep:
        scope -> sessions
        session -> scopes
    so that a disconnect can leave every scope without scanning them all.
    """

    def __init__(self):
        self._sessions_by_scope: dict[str, set[str]] = {}
        self._scopes_by_session: dict[str, set[str]] = {}

    def join(self, scope: str, session_id: str) -> bool:
        """
        Subscribe a session to a scope. Idempotent.

        Returns:
            True if the session was not already a member
        """
        members = self._sessions_by_scope.setdefault(scope, set())
        if session_id in members:
            return False
        members.add(session_id)
        self._scopes_by_session.setdefault(session_id, set()).add(scope)
        return True

    def leave(self, scope: str, session_id: str) -> bool:
        """Unsubscribe a session from a scope. Returns False if it was not a member."""
        members = self._sessions_by_scope.get(scope)
        if not members or session_id not in members:
            return False
        members.discard(session_id)
        if not members:
            del self._sessions_by_scope[scope]

        scopes = self._scopes_by_session.get(session_id)
        if scopes is not None:
            scopes.discard(scope)
            if not scopes:
                del self._scopes_by_session[session_id]
        return True

    def leave_all(self, session_id: str) -> frozenset[str]:
        """Remove a session from every scope; returns the scopes it left."""
        scopes = self._scopes_by_session.pop(session_id, set())
        for scope in scopes:
            members = self._sessions_by_scope.get(scope)
            if members is None:
                continue
            members.discard(session_id)
            if not members:
                del self._sessions_by_scope[scope]
        return frozenset(scopes)

    def sessions_in(self, scope: str) -> frozenset[str]:
        return frozenset(self._sessions_by_scope.get(scope, ()))

    def scopes_for(self, session_id: str) -> frozenset[str]:
        return frozenset(self._scopes_by_session.get(session_id, ()))

    def is_member(self, scope: str, session_id: str) -> bool:
        return session_id in self._sessions_by_scope.get(scope, ())


@lru_cache(maxsize=1)
def get_room_router() -> RoomRouter:
    """Process-wide router built from settings.CHAT_REALTIME["ROOM_ROUTER"]."""
    return import_string(settings.CHAT_REALTIME["ROOM_ROUTER"])()
