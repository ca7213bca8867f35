"""
Service layer primitives.

- ServiceResult: explicit success/failure wrapper for expected outcomes
- BaseService: logging and transaction helpers shared by service classes

Services hold the business rules. Views and consumers translate transport
concerns (HTTP, WebSocket frames) into service calls and translate the
ServiceResult back.

    - ServiceResult: expected failures (validation, business rules)
    - Exceptions: unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def rename(cls, conversation, title: str) -> ServiceResult[Conversation]:
            if not title.strip():
                return ServiceResult.failure("Title required", error_code="TITLE_REQUIRED")
            with cls.atomic():
                conversation.title = title
                conversation.save(update_fields=["title", "updated_at"])
            cls.get_logger().info(f"Renamed conversation {conversation.id}")
            return ServiceResult.success(conversation)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

    from core.exceptions import BaseApplicationError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        success: Whether the operation succeeded
        data: Result payload when successful
        error: Human-readable message when failed
        error_code: Machine-readable code when failed
        errors: Optional field-level messages for validation failures

    Usage:
        result = MessageService.send_message(conversation, sender, MessageType.TEXT, content=text)
        if not result:
            return service_error_response(result)
        message = result.data
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Build a failed result.

        Args:
            error: Human-readable message
            error_code: Machine-readable code, e.g. "NOT_PARTICIPANT"
            errors: Field-level messages
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def raise_for_failure(self, exc_class: type[BaseApplicationError]) -> None:
        """Raise exc_class carrying this result's message and code if failed."""
        if not self.success:
            raise exc_class(self.error or "", error_code=self.error_code)

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    All service methods are classmethods; no instance state is kept.

    Design Notes:
        - ServiceResult for expected failures
        - Exceptions propagate for unexpected failures
        - cls.atomic() marks transaction boundaries explicitly
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """Run the enclosed block inside transaction.atomic()."""
        with transaction.atomic():
            yield

