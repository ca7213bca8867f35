"""
Application exception hierarchy.

Every error raised by domain code carries a machine-readable error code so
that REST views and WebSocket consumers can report it uniformly.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── AuthenticationError - Missing or invalid credentials
    ├── ValidationError - Malformed or incomplete input
    ├── PermissionDeniedError - Authenticated but not allowed
    ├── PersistenceError - Durable store rejected a write
    └── DecryptionError - Stored ciphertext could not be decrypted

Usage:
    from core.exceptions import PermissionDeniedError

    raise PermissionDeniedError("Join the conversation first", error_code="NOT_JOINED")

Note:
    Expected business failures are returned as core.services.ServiceResult.
    These exceptions are for conditions a caller cannot recover from inline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class AuthenticationError(BaseApplicationError):
    """
    Raised when a connection or request presents no valid credential.

    WebSocket consumers translate this into close code 4001.
    """

    default_error_code: str = "UNAUTHENTICATED"


class ValidationError(BaseApplicationError):
    """Raised when input is malformed or missing required fields."""

    default_error_code: str = "VALIDATION_ERROR"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the actor is authenticated but not allowed to act.

    Examples: a non-participant joining a conversation, a non-sender
    editing a message, a non-admin removing a group member.
    """

    default_error_code: str = "NOT_AUTHORIZED"


class PersistenceError(BaseApplicationError):
    """Raised when the durable store fails a read or write."""

    default_error_code: str = "PERSISTENCE_FAILURE"


class DecryptionError(BaseApplicationError):
    """
    Raised when stored message ciphertext cannot be decrypted.

    Readers degrade to a placeholder instead of failing the whole page.
    """

    default_error_code: str = "DECRYPTION_FAILURE"
