"""
Authentication models.

Models:
    User: Email-identified account with chat presence fields

Presence fields (status, last_seen) are written only by the presence path
(first connect / last disconnect) or by an explicit status change from the
client. Writes happen asynchronously after the broadcast, so the stored
value may briefly trail what connected clients see.
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class UserStatus(models.TextChoices):
    """Presence status shown to other users."""

    ONLINE = "online", "Online"
    OFFLINE = "offline", "Offline"
    AWAY = "away", "Away"
    BUSY = "busy", "Busy"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Display name shown in conversations and call prompts
        avatar: Optional avatar URL (storage is handled elsewhere)
        status: Last persisted presence status
        last_seen: When the user's last session disconnected
        is_active: Whether the account may authenticate
        is_staff: Whether the user can access Django admin
        date_joined: When the account was created
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Display name shown to other users",
    )
    avatar = models.URLField(
        max_length=500,
        blank=True,
        help_text="URL of the user's avatar image",
    )

    status = models.CharField(
        max_length=10,
        choices=UserStatus.choices,
        default=UserStatus.OFFLINE,
        help_text="Last persisted presence status",
    )
    last_seen = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user's last connected session closed",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Display name, falling back to the email address."""
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email.split("@")[0]

    def caller_info(self) -> dict:
        """Identity block sent with call invitations."""
        return {
            "id": self.pk,
            "full_name": self.get_full_name(),
            "avatar": self.avatar or None,
        }
