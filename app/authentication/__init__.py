"""
Authentication application.

Email-based users with a persisted presence status, authenticated with
JWT access tokens over both REST and WebSocket.

Key components:
    - User model: Custom email-based user with status and last_seen
    - UserStatusService: Persists status changes coming from presence

Usage:
    from authentication.models import User, UserStatus
    from authentication.services import UserStatusService
"""
