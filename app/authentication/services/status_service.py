"""
Durable user presence status.

The presence registry decides *when* a user changes status; this service
only records the outcome on the User row so that REST clients and users
who connect later see the last known status and last_seen time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.utils import timezone

from authentication.models import User, UserStatus
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from datetime import datetime


class UserStatusService(BaseService):
    """
    Persist presence transitions.

    Usage:
        # From the connection lifecycle (fire-and-forget)
        UserStatusService.record_status(user.id, UserStatus.OFFLINE, last_seen=now)

        # From an explicit client request
        result = UserStatusService.change_status(user, "busy")
    """

    # Statuses a client may pick explicitly. "offline" is derived from
    # having no connected sessions and cannot be chosen.
    SELECTABLE_STATUSES = frozenset(
        {UserStatus.ONLINE, UserStatus.AWAY, UserStatus.BUSY}
    )

    @classmethod
    def is_selectable(cls, status: str) -> bool:
        return status in cls.SELECTABLE_STATUSES

    @classmethod
    def record_status(
        cls,
        user_id: int,
        status: str,
        last_seen: datetime | None = None,
    ) -> ServiceResult[int]:
        """
        Write status (and optionally last_seen) for a user.

        Uses a single UPDATE so concurrent transitions never overwrite
        unrelated columns.

        Returns:
            ServiceResult with the number of rows updated
        """
        fields: dict = {"status": status, "updated_at": timezone.now()}
        if last_seen is not None:
            fields["last_seen"] = last_seen

        updated = User.objects.filter(pk=user_id).update(**fields)
        if not updated:
            cls.get_logger().warning(f"Status write for unknown user {user_id}")
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        cls.get_logger().debug(f"User {user_id} status recorded as {status}")
        return ServiceResult.success(updated)

    @classmethod
    def change_status(cls, user: User, status: str) -> ServiceResult[User]:
        """
        Apply an explicit status change requested by the user.

        Args:
            user: The requesting user
            status: One of online, away, busy

        Returns:
            ServiceResult with the refreshed user, or INVALID_STATUS
        """
        if not cls.is_selectable(status):
            return ServiceResult.failure(
                f"Invalid status: {status}",
                error_code="INVALID_STATUS",
            )

        result = cls.record_status(user.pk, status)
        if not result:
            return result

        user.status = status
        return ServiceResult.success(user)
