"""
Reusable abstract mixins for Django models.

Available Mixins:
    SoftDeleteMixin: is_deleted / deleted_at flags with soft_delete() helper

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin

    class Message(SoftDeleteMixin, BaseModel):
        content = models.TextField()

    message.soft_delete()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteMixin(models.Model):
    """
    Mark rows as deleted instead of removing them.

    The row stays queryable so that clients holding a reference to it
    (for example a message id in a chat history) can render a
    "deleted" placeholder instead of a gap.

    Fields:
        is_deleted: Whether the record has been soft deleted
        deleted_at: When soft_delete() was called
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft deleted",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    def soft_delete(self, extra_update_fields: list[str] | None = None) -> None:
        """
        Flag this record as deleted and persist the flags.

        Args:
            extra_update_fields: Additional fields the caller changed on the
                instance that must be saved in the same UPDATE.
        """
        self.is_deleted = True
        self.deleted_at = timezone.now()
        update_fields = ["is_deleted", "deleted_at", "updated_at"]
        if extra_update_fields:
            update_fields.extend(extra_update_fields)
        self.save(update_fields=update_fields)
