"""
Integration tests for UserStatusService.
"""

from django.utils import timezone

from authentication.models import UserStatus
from authentication.services import UserStatusService
from authentication.tests.factories import UserFactory


class TestRecordStatus:
    """Tests for UserStatusService.record_status()."""

    def test_records_offline_with_last_seen(self, db):
        user = UserFactory(status=UserStatus.ONLINE)
        seen = timezone.now()

        result = UserStatusService.record_status(user.id, UserStatus.OFFLINE, last_seen=seen)

        user.refresh_from_db()
        assert result.success is True
        assert user.status == UserStatus.OFFLINE
        assert user.last_seen == seen

    def test_online_transition_keeps_last_seen(self, db):
        """
        Coming online does not erase when the user was last seen.

        Why it matters: last_seen is only meaningful between sessions.
        """
        seen = timezone.now()
        user = UserFactory(last_seen=seen)

        UserStatusService.record_status(user.id, UserStatus.ONLINE)

        user.refresh_from_db()
        assert user.status == UserStatus.ONLINE
        assert user.last_seen == seen

    def test_unknown_user_fails(self, db):
        result = UserStatusService.record_status(999999, UserStatus.ONLINE)

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"


class TestChangeStatus:
    """Tests for UserStatusService.change_status()."""

    def test_accepts_busy(self, db):
        user = UserFactory()

        result = UserStatusService.change_status(user, "busy")

        user.refresh_from_db()
        assert result.success is True
        assert user.status == UserStatus.BUSY

    def test_rejects_offline(self, db):
        """
        Clients cannot pick offline explicitly.

        Why it matters: offline is derived from having zero sessions.
        """
        user = UserFactory()

        result = UserStatusService.change_status(user, "offline")

        assert result.success is False
        assert result.error_code == "INVALID_STATUS"

    def test_rejects_unknown_value(self, db):
        result = UserStatusService.change_status(UserFactory(), "sleeping")

        assert result.error_code == "INVALID_STATUS"
