"""
Tests for the room router.
"""

import pytest

from chat.rooms import RoomRouter, conversation_scope, personal_scope


@pytest.fixture
def router():
    return RoomRouter()


class TestScopeNames:
    def test_conversation_scope(self):
        assert conversation_scope(42) == "conversation:42"

    def test_personal_scope(self):
        assert personal_scope(7) == "user:7"


class TestJoinLeave:
    def test_join_adds_member(self, router):
        assert router.join("conversation:1", "s1") is True
        assert router.sessions_in("conversation:1") == frozenset({"s1"})
        assert router.is_member("conversation:1", "s1")

    def test_join_twice_is_idempotent(self, router):
        router.join("conversation:1", "s1")

        assert router.join("conversation:1", "s1") is False
        assert router.sessions_in("conversation:1") == frozenset({"s1"})

    def test_leave_removes_member(self, router):
        router.join("conversation:1", "s1")

        assert router.leave("conversation:1", "s1") is True
        assert router.sessions_in("conversation:1") == frozenset()
        assert router.scopes_for("s1") == frozenset()

    def test_leave_when_not_member_returns_false(self, router):
        assert router.leave("conversation:1", "s1") is False

    def test_unknown_scope_has_no_sessions(self, router):
        assert router.sessions_in("conversation:404") == frozenset()


class TestLeaveAll:
    def test_leaves_every_scope_of_session(self, router):
        router.join("user:1", "s1")
        router.join("conversation:1", "s1")
        router.join("conversation:2", "s1")
        router.join("conversation:1", "s2")

        left = router.leave_all("s1")

        assert left == frozenset({"user:1", "conversation:1", "conversation:2"})
        assert router.scopes_for("s1") == frozenset()
        assert router.sessions_in("conversation:1") == frozenset({"s2"})
        assert router.sessions_in("conversation:2") == frozenset()

    def test_unknown_session_leaves_nothing(self, router):
        assert router.leave_all("ghost") == frozenset()

    def test_membership_maps_agree(self, router):
        router.join("conversation:1", "s1")
        router.join("conversation:1", "s2")
        router.join("conversation:2", "s2")
        router.leave("conversation:1", "s2")

        for session_id in ("s1", "s2"):
            for scope in router.scopes_for(session_id):
                assert session_id in router.sessions_in(scope)
