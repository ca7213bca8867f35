"""
Chat system models.

This module defines the durable state behind the real-time chat core:
- Direct (1:1) conversations between exactly two users
- Group conversations with administrators
- Encrypted messages with reactions and read/delivered receipts

Models:
    Conversation: Container for messages between participants
    DirectConversationPair: Enforces one direct conversation per user pair
    Participant: Membership row with role and per-user unread counter
    Message: Individual message (content stored encrypted)
    MessageReaction: One reaction per user per message
    MessageReceipt: Read or delivered marker per user per message

Design Decisions:
    - Direct conversations are immutable once created
    - Groups keep at least one admin while they have participants
    - Leaving deletes the Participant row; an emptied group is deleted
    - Deleting a conversation is a hard delete that cascades to messages
    - Message deletion comes in two independent forms: for everyone
      (soft delete, content cleared) and for me (per-user hide list)
    - unread_count lives on Participant and is only changed with
      atomic UPDATE expressions
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.models import BaseModel
from core.model_mixins import SoftDeleteMixin

if TYPE_CHECKING:
    from authentication.models import User


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, immutable membership, no roles
    GROUP: Three or more participants at creation, admins manage membership
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class ParticipantRole(models.TextChoices):
    """
    Role within a group conversation.

    ADMIN: Can add/remove participants, edit details, delete the group
    MEMBER: Can send messages and leave

    Direct conversation participants have no role (NULL).
    """

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class MessageType(models.TextChoices):
    """
    Type of message content.

    TEXT requires content. Every other type requires a file reference;
    content is then an optional caption.
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    FILE = "file", "File"
    LOCATION = "location", "Location"


class ReceiptKind(models.TextChoices):
    """Kind of per-user message receipt."""

    DELIVERED = "delivered", "Delivered"
    READ = "read", "Read"


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Fields:
        conversation_type: direct or group
        title: Group name (empty for direct)
        description: Optional group description
        created_by: User who created the conversation
        last_message: Most recent message (for conversation lists)
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: Participant rows (current members only)
        messages: All messages, deleted with the conversation
        direct_pair: DirectConversationPair if type is DIRECT
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.GROUP,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    title = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Title for group conversations (empty for direct)",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Optional group description",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_message = models.ForeignKey(
        "Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recent message in this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["-last_message_at", "-created_at"],
                name="chat_conv_activity_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.conversation_type == ConversationType.DIRECT:
            return f"Direct({self.pk})"
        if self.title:
            return f"Group: {self.title}"
        return f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP

    def participant_user_ids(self) -> list[int]:
        """Ids of all current participants."""
        return list(self.participants.values_list("user_id", flat=True))


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    User pairs are stored in canonical order (lower id first) so that either
    user starting a chat lands in the same conversation.

    Constraints:
        - UniqueConstraint(user_lower, user_higher)
        - CheckConstraint(user_lower_id < user_higher_id)
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"


class Participant(BaseModel):
    """
    Current membership of a user in a conversation.

    Fields:
        conversation: The conversation
        user: The member
        role: admin/member for groups, NULL for direct
        unread_count: Messages from others not yet marked read

    joined_at is exposed as an alias of created_at; it orders admin
    promotion (oldest remaining participant first).
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="The conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_participations",
        help_text="The participating user",
    )

    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        null=True,
        blank=True,
        help_text="Role in group conversations (NULL for direct conversations)",
    )

    unread_count = models.PositiveIntegerField(
        default=0,
        help_text="Messages from other participants not yet read by this user",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "conversation"], name="chat_part_user_conv_idx"),
        ]

    def __str__(self) -> str:
        return f"Participant(user={self.user_id}, conversation={self.conversation_id})"

    @property
    def joined_at(self):
        return self.created_at

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN


class Message(SoftDeleteMixin, BaseModel):
    """
    A message in a conversation.

    Content is stored as ciphertext produced by chat.encryption.MessageCipher
    when is_encrypted is True. Readers decrypt per message and substitute a
    placeholder when decryption fails.

    Fields:
        conversation: Owning conversation (cascade delete)
        sender: Author (NULL if the account was removed)
        message_type: text/image/video/audio/file/location
        content: Ciphertext of the text body or caption
        file_url / file_name / file_size / mime_type: File reference
        reply_to: Message in the same conversation being replied to
        is_edited / edited_at: Edit state (text only)
        is_deleted / deleted_at: Deleted for everyone
        deleted_for: Users who deleted the message for themselves
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Kind of message content",
    )

    content = models.TextField(
        blank=True,
        default="",
        help_text="Message body or caption (ciphertext when is_encrypted)",
    )

    is_encrypted = models.BooleanField(
        default=True,
        help_text="Whether content is stored as ciphertext",
    )

    file_url = models.URLField(
        max_length=1000,
        blank=True,
        default="",
        help_text="Reference to the attached file (required for non-text types)",
    )
    file_name = models.CharField(max_length=255, blank=True, default="")
    file_size = models.PositiveBigIntegerField(null=True, blank=True)
    mime_type = models.CharField(max_length=100, blank=True, default="")

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to (same conversation)",
    )

    is_edited = models.BooleanField(default=False)
    edited_at = models.DateTimeField(null=True, blank=True)

    deleted_for = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_messages",
        help_text="Users who deleted this message for themselves only",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "-created_at"],
                name="chat_msg_conv_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message({self.pk}, {self.message_type})"

    @property
    def is_text(self) -> bool:
        return self.message_type == MessageType.TEXT


class MessageReaction(BaseModel):
    """
    A user's reaction to a message.

    A user holds at most one reaction per message; reacting again replaces
    the previous one.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
    )
    emoji = models.CharField(
        max_length=32,
        help_text="Reaction emoji or short code",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_reaction_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"Reaction({self.user_id}, {self.emoji})"


class MessageReceipt(BaseModel):
    """
    Read or delivered marker for one user on one message.

    Unique per (message, user, kind), so repeated receipts are idempotent.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="receipts",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_receipts",
    )
    kind = models.CharField(max_length=10, choices=ReceiptKind.choices)

    class Meta:
        db_table = "chat_message_receipt"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "kind"],
                name="unique_receipt_per_user_kind",
            ),
        ]

    def __str__(self) -> str:
        return f"Receipt({self.kind}, message={self.message_id}, user={self.user_id})"
