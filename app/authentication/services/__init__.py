"""Authentication services package."""

from authentication.services.status_service import UserStatusService

__all__ = ["UserStatusService"]
