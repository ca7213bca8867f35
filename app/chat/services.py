"""
Chat service layer: durable conversation and message state.

Services:
    ConversationService: Direct/group creation, details, deletion, lookup
    ParticipantService: Membership changes and admin promotion
    MessageService: Send, edit, delete, history, read tracking
    ReceiptService: Individual read/delivered receipts
    ReactionService: One reaction per user per message

Every mutating method returns a ServiceResult. Expected failures carry an
error_code; database errors propagate. Services never talk to sockets:
callers turn a successful result into OutboundEvents (chat.events) and hand
them to the dispatcher, so nothing is broadcast unless the write committed.

Design Decisions:
    - Message text is encrypted before it reaches the database and
      decrypted per message on the way out; a message that fails to
      decrypt is shown as a placeholder instead of failing the page
    - Unread counters are changed with UPDATE ... SET unread_count =
      unread_count + 1, never read-modify-write, so concurrent sends to
      the same conversation cannot lose increments
    - Leaving or removing the last admin promotes the oldest remaining
      participant; an empty group is deleted with its messages
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG, REACTION_CONFIG
from chat.encryption import get_message_cipher
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageReaction,
    MessageReceipt,
    MessageType,
    Participant,
    ParticipantRole,
    ReceiptKind,
)
from core.exceptions import DecryptionError
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


# =============================================================================
# ConversationService
# =============================================================================


class ConversationService(BaseService):
    """
    Conversation lifecycle.

    Usage:
        result = ConversationService.create_direct(alice, bob)
        result = ConversationService.create_group(alice, [bob.id, carol.id], title="Team")
    """

    @classmethod
    def create_direct(cls, user: User, other_user_id: int) -> ServiceResult[Conversation]:
        """
        Return the direct conversation between two users, creating it if needed.

        Error codes:
            SELF_CONVERSATION: Cannot start a direct chat with yourself
            USER_NOT_FOUND: The other user does not exist
        """
        if user.pk == other_user_id:
            return ServiceResult.failure(
                "Cannot start a conversation with yourself",
                error_code="SELF_CONVERSATION",
            )

        other = get_user_model().objects.filter(pk=other_user_id, is_active=True).first()
        if other is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        lower, higher = sorted([user, other], key=lambda u: u.pk)

        existing = DirectConversationPair.objects.filter(
            user_lower=lower, user_higher=higher
        ).select_related("conversation").first()
        if existing:
            return ServiceResult.success(existing.conversation)

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.DIRECT,
                created_by=user,
            )
            DirectConversationPair.objects.create(
                conversation=conversation, user_lower=lower, user_higher=higher
            )
            Participant.objects.bulk_create(
                [
                    Participant(conversation=conversation, user=lower),
                    Participant(conversation=conversation, user=higher),
                ]
            )

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} between {lower.pk} and {higher.pk}"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def create_group(
        cls,
        creator: User,
        participant_ids: list[int],
        title: str,
        description: str = "",
    ) -> ServiceResult[Conversation]:
        """
        Create a group with the creator as its admin.

        Args:
            creator: User creating the group
            participant_ids: Other members (creator is added automatically)
            title: Required group name
            description: Optional description

        Error codes:
            TITLE_REQUIRED: Empty title
            TOO_FEW_PARTICIPANTS: Fewer than three members including creator
            USER_NOT_FOUND: Some participant ids do not exist
        """
        title = (title or "").strip()
        if not title:
            return ServiceResult.failure("Group name is required", error_code="TITLE_REQUIRED")

        other_ids = {pk for pk in participant_ids if pk != creator.pk}
        if len(other_ids) + 1 < CONVERSATION_CONFIG.MIN_GROUP_PARTICIPANTS:
            return ServiceResult.failure(
                f"Group chats need at least {CONVERSATION_CONFIG.MIN_GROUP_PARTICIPANTS} "
                "participants including you",
                error_code="TOO_FEW_PARTICIPANTS",
            )

        others = list(get_user_model().objects.filter(pk__in=other_ids, is_active=True))
        if len(others) != len(other_ids):
            return ServiceResult.failure(
                "One or more users not found", error_code="USER_NOT_FOUND"
            )

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                title=title[: CONVERSATION_CONFIG.MAX_TITLE_LENGTH],
                description=description or "",
                created_by=creator,
            )
            Participant.objects.create(
                conversation=conversation, user=creator, role=ParticipantRole.ADMIN
            )
            Participant.objects.bulk_create(
                [
                    Participant(conversation=conversation, user=other, role=ParticipantRole.MEMBER)
                    for other in sorted(others, key=lambda u: u.pk)
                ]
            )

        cls.get_logger().info(
            f"User {creator.pk} created group {conversation.id} with {len(others) + 1} members"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def update_details(
        cls,
        conversation: Conversation,
        user: User,
        title: str | None = None,
        description: str | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Change a group's title and/or description. Admins only.

        Error codes:
            NOT_GROUP, NOT_ADMIN, TITLE_REQUIRED
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Only group conversations have details", error_code="NOT_GROUP"
            )
        if not ParticipantService.is_admin(conversation, user):
            return ServiceResult.failure(
                "Only admins can update the group", error_code="NOT_ADMIN"
            )

        update_fields = ["updated_at"]
        if title is not None:
            title = title.strip()
            if not title:
                return ServiceResult.failure(
                    "Group name is required", error_code="TITLE_REQUIRED"
                )
            conversation.title = title[: CONVERSATION_CONFIG.MAX_TITLE_LENGTH]
            update_fields.append("title")
        if description is not None:
            conversation.description = description
            update_fields.append("description")

        conversation.save(update_fields=update_fields)
        return ServiceResult.success(conversation)

    @classmethod
    def delete_conversation(cls, conversation: Conversation, user: User) -> ServiceResult[int]:
        """
        Permanently delete a conversation and everything in it.

        Group conversations may be deleted by admins; direct conversations
        by either participant.

        Returns:
            ServiceResult with the deleted conversation id

        Error codes:
            NOT_ADMIN, NOT_PARTICIPANT
        """
        if conversation.is_group:
            if not ParticipantService.is_admin(conversation, user):
                return ServiceResult.failure(
                    "Only admins can delete a group", error_code="NOT_ADMIN"
                )
        elif not cls.is_participant(conversation.pk, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        conversation_id = conversation.pk
        cls._purge(conversation)
        cls.get_logger().info(f"User {user.pk} deleted conversation {conversation_id}")
        return ServiceResult.success(conversation_id)

    @classmethod
    def _purge(cls, conversation: Conversation) -> None:
        with cls.atomic():
            # Break the last_message cycle before the cascade removes messages.
            Conversation.objects.filter(pk=conversation.pk).update(last_message=None)
            conversation.delete()

    @classmethod
    def is_participant(cls, conversation_id, user_id) -> bool:
        return Participant.objects.filter(
            conversation_id=conversation_id, user_id=user_id
        ).exists()

    @classmethod
    def get_for_participant(cls, conversation_id, user: User) -> ServiceResult[Conversation]:
        """
        Load a conversation the user belongs to.

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_PARTICIPANT
        """
        conversation = Conversation.objects.filter(pk=conversation_id).first()
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found", error_code="CONVERSATION_NOT_FOUND"
            )
        if not cls.is_participant(conversation.pk, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def list_for_user(cls, user: User):
        """Conversations the user belongs to, most recently active first."""
        return (
            Conversation.objects.filter(participants__user=user)
            .select_related("last_message", "last_message__sender")
            .prefetch_related("participants__user")
            .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
        )


# =============================================================================
# ParticipantService
# =============================================================================


@dataclass(frozen=True)
class Departure:
    """
    Outcome of a participant leaving or being removed.

    Attributes:
        user_id: The departed user
        conversation_deleted: True if nobody remained and the group was deleted
        promoted_user_id: User promoted to admin, if any
    """

    user_id: int
    conversation_deleted: bool = False
    promoted_user_id: int | None = None


class ParticipantService(BaseService):
    """
    Group membership management.

    Direct conversations have fixed membership; every method here rejects
    them with NOT_GROUP.
    """

    @classmethod
    def is_admin(cls, conversation: Conversation, user: User) -> bool:
        return Participant.objects.filter(
            conversation=conversation, user=user, role=ParticipantRole.ADMIN
        ).exists()

    @classmethod
    def add_participants(
        cls, conversation: Conversation, actor: User, user_ids: list[int]
    ) -> ServiceResult[list[Participant]]:
        """
        Add users to a group. Existing members are skipped.

        Error codes:
            NOT_GROUP, NOT_ADMIN, USER_NOT_FOUND
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Can only add participants to group chats", error_code="NOT_GROUP"
            )
        if not cls.is_admin(conversation, actor):
            return ServiceResult.failure(
                "Only admins can add participants", error_code="NOT_ADMIN"
            )

        requested = set(user_ids)
        users = list(get_user_model().objects.filter(pk__in=requested, is_active=True))
        if len(users) != len(requested):
            return ServiceResult.failure(
                "One or more users not found", error_code="USER_NOT_FOUND"
            )

        existing = set(conversation.participants.values_list("user_id", flat=True))
        new_members = [
            Participant(conversation=conversation, user=user, role=ParticipantRole.MEMBER)
            for user in sorted(users, key=lambda u: u.pk)
            if user.pk not in existing
        ]
        with cls.atomic():
            for participant in new_members:
                participant.save()

        cls.get_logger().info(
            f"User {actor.pk} added {len(new_members)} participants to {conversation.id}"
        )
        return ServiceResult.success(new_members)

    @classmethod
    def remove_participant(
        cls, conversation: Conversation, actor: User, user_id: int
    ) -> ServiceResult[Departure]:
        """
        Remove a member from a group. Admins only.

        Error codes:
            NOT_GROUP, NOT_ADMIN, NOT_PARTICIPANT
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Can only remove participants from group chats", error_code="NOT_GROUP"
            )
        if not cls.is_admin(conversation, actor):
            return ServiceResult.failure(
                "Only admins can remove participants", error_code="NOT_ADMIN"
            )

        participant = conversation.participants.filter(user_id=user_id).first()
        if participant is None:
            return ServiceResult.failure(
                "User is not a participant", error_code="NOT_PARTICIPANT"
            )

        departure = cls._depart(conversation, participant)
        cls.get_logger().info(
            f"User {actor.pk} removed {user_id} from conversation {conversation.pk}"
        )
        return ServiceResult.success(departure)

    @classmethod
    def leave(cls, conversation: Conversation, user: User) -> ServiceResult[Departure]:
        """
        Leave a group.

        Error codes:
            NOT_GROUP, NOT_PARTICIPANT
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Cannot leave a direct conversation", error_code="NOT_GROUP"
            )

        participant = conversation.participants.filter(user=user).first()
        if participant is None:
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        departure = cls._depart(conversation, participant)
        cls.get_logger().info(f"User {user.pk} left conversation {conversation.pk}")
        return ServiceResult.success(departure)

    @classmethod
    def _depart(cls, conversation: Conversation, participant: Participant) -> Departure:
        """
        Delete a membership row and restore the group invariants.

        - nobody left: the conversation and its messages are deleted
        - no admin left: the oldest remaining participant becomes admin
        """
        user_id = participant.user_id
        with cls.atomic():
            participant.delete()

            remaining = conversation.participants.order_by("created_at", "id")
            if not remaining.exists():
                ConversationService._purge(conversation)
                return Departure(user_id=user_id, conversation_deleted=True)

            if remaining.filter(role=ParticipantRole.ADMIN).exists():
                return Departure(user_id=user_id)

            successor = remaining.select_for_update().first()
            successor.role = ParticipantRole.ADMIN
            successor.save(update_fields=["role", "updated_at"])

        cls.get_logger().info(
            f"Promoted user {successor.user_id} to admin of conversation {conversation.pk}"
        )
        return Departure(user_id=user_id, promoted_user_id=successor.user_id)


# =============================================================================
# MessageService
# =============================================================================


@dataclass(frozen=True)
class MessagePage:
    """
    One page of conversation history.

    Messages are ordered oldest first within the page; page 1 holds the
    newest messages.
    """

    messages: list[Message]
    page: int
    limit: int
    has_more: bool


class MessageService(BaseService):
    """
    Message persistence.

    Usage:
        result = MessageService.send_message(conversation, user, MessageType.TEXT, content="hi")
        if result:
            MessageService.read_content(result.data)  # "hi"
    """

    @classmethod
    def read_content(cls, message: Message) -> str:
        """
        Plaintext content for display.

        Deleted messages show a placeholder; ciphertext that fails to
        decrypt shows the decryption placeholder.
        """
        if message.is_deleted:
            return MESSAGE_CONFIG.DELETED_PLACEHOLDER
        if not message.is_encrypted or not message.content:
            return message.content
        try:
            return get_message_cipher().decrypt(message.content)
        except DecryptionError:
            cls.get_logger().warning(f"Could not decrypt message {message.pk}")
            return MESSAGE_CONFIG.DECRYPTION_FAILED_PLACEHOLDER

    @classmethod
    def _validate_body(
        cls, message_type: str, content: str, file_url: str
    ) -> ServiceResult | None:
        if message_type not in MessageType.values:
            return ServiceResult.failure(
                f"Invalid message type: {message_type}",
                error_code="INVALID_MESSAGE_TYPE",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        if message_type == MessageType.TEXT:
            if not content.strip():
                return ServiceResult.failure(
                    "Message content is required for text messages",
                    error_code="CONTENT_REQUIRED",
                )
        elif not file_url:
            return ServiceResult.failure(
                "File URL is required for media messages",
                error_code="FILE_REQUIRED",
            )
        return None

    @classmethod
    def get_for_participant(cls, message_id, user: User) -> ServiceResult[Message]:
        """
        Load a message in a conversation the user belongs to.

        Error codes:
            MESSAGE_NOT_FOUND, NOT_PARTICIPANT
        """
        message = (
            Message.objects.select_related("conversation", "sender")
            .filter(pk=message_id)
            .first()
        )
        if message is None:
            return ServiceResult.failure("Message not found", error_code="MESSAGE_NOT_FOUND")
        if not ConversationService.is_participant(message.conversation_id, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        return ServiceResult.success(message)

    @classmethod
    def send_message(
        cls,
        conversation: Conversation,
        sender: User,
        message_type: str = MessageType.TEXT,
        content: str = "",
        file_url: str = "",
        file_name: str = "",
        file_size: int | None = None,
        mime_type: str = "",
        reply_to_id: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Persist a message and bump every other participant's unread count.

        The message row, the conversation's last_message pointer and the
        unread increments commit in one transaction.

        Args:
            conversation: Target conversation
            sender: Author; must be a participant
            message_type: One of MessageType
            content: Text body, or optional caption for media
            file_url / file_name / file_size / mime_type: File reference
            reply_to_id: Message being replied to; ignored unless it is in
                the same conversation

        Error codes:
            NOT_PARTICIPANT, INVALID_MESSAGE_TYPE, CONTENT_REQUIRED,
            FILE_REQUIRED, CONTENT_TOO_LONG
        """
        if not ConversationService.is_participant(conversation.pk, sender.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        content = content or ""
        file_url = file_url or ""
        invalid = cls._validate_body(message_type, content, file_url)
        if invalid:
            return invalid

        reply_to = None
        if reply_to_id:
            reply_to = Message.objects.filter(
                pk=reply_to_id, conversation=conversation
            ).first()

        body = content.strip() if message_type == MessageType.TEXT else content
        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                message_type=message_type,
                content=get_message_cipher().encrypt(body) if body else "",
                is_encrypted=bool(body),
                file_url=file_url,
                file_name=file_name or "",
                file_size=file_size,
                mime_type=mime_type or "",
                reply_to=reply_to,
            )

            Conversation.objects.filter(pk=conversation.pk).update(
                last_message=message,
                last_message_at=message.created_at,
                updated_at=timezone.now(),
            )
            Participant.objects.filter(conversation=conversation).exclude(
                user=sender
            ).update(unread_count=F("unread_count") + 1)

        conversation.last_message = message
        conversation.last_message_at = message.created_at

        cls.get_logger().debug(
            f"User {sender.pk} sent {message_type} message {message.pk} "
            f"to conversation {conversation.pk}"
        )
        return ServiceResult.success(message)

    @classmethod
    def edit_message(cls, message: Message, user: User, content: str) -> ServiceResult[Message]:
        """
        Replace the text of one's own text message.

        Error codes:
            NOT_AUTHOR, NOT_EDITABLE, MESSAGE_DELETED, CONTENT_REQUIRED,
            CONTENT_TOO_LONG
        """
        if message.sender_id != user.pk:
            return ServiceResult.failure(
                "You can only edit your own messages", error_code="NOT_AUTHOR"
            )
        if not message.is_text:
            return ServiceResult.failure(
                "Only text messages can be edited", error_code="NOT_EDITABLE"
            )
        if message.is_deleted:
            return ServiceResult.failure(
                "Cannot edit a deleted message", error_code="MESSAGE_DELETED"
            )

        content = (content or "").strip()
        invalid = cls._validate_body(MessageType.TEXT, content, "")
        if invalid:
            return invalid

        with cls.atomic():
            locked = Message.objects.select_for_update().get(pk=message.pk)
            locked.content = get_message_cipher().encrypt(content)
            locked.is_encrypted = True
            locked.is_edited = True
            locked.edited_at = timezone.now()
            locked.save(
                update_fields=["content", "is_encrypted", "is_edited", "edited_at", "updated_at"]
            )

        cls.get_logger().debug(f"User {user.pk} edited message {message.pk}")
        return ServiceResult.success(locked)

    @classmethod
    def delete_for_everyone(cls, message: Message, user: User) -> ServiceResult[Message]:
        """
        Delete one's own message for all participants.

        Content is cleared; the row stays so that history shows a placeholder.

        Error codes:
            NOT_AUTHOR, ALREADY_DELETED
        """
        if message.sender_id != user.pk:
            return ServiceResult.failure(
                "You can only delete your own messages", error_code="NOT_AUTHOR"
            )
        if message.is_deleted:
            return ServiceResult.failure(
                "Message is already deleted", error_code="ALREADY_DELETED"
            )

        message.content = ""
        message.is_encrypted = False
        message.soft_delete(extra_update_fields=["content", "is_encrypted"])

        cls.get_logger().debug(f"User {user.pk} deleted message {message.pk} for everyone")
        return ServiceResult.success(message)

    @classmethod
    def delete_for_me(cls, message: Message, user: User) -> ServiceResult[Message]:
        """
        Hide a message from the user's own history. Idempotent.

        Error codes:
            NOT_PARTICIPANT
        """
        if not ConversationService.is_participant(message.conversation_id, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        message.deleted_for.add(user)
        return ServiceResult.success(message)

    @classmethod
    def list_messages(
        cls,
        conversation: Conversation,
        user: User,
        page: int = 1,
        limit: int = MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
    ) -> ServiceResult[MessagePage]:
        """
        Page through history, newest page first.

        Messages the user deleted for themselves are excluded.

        Error codes:
            NOT_PARTICIPANT
        """
        if not ConversationService.is_participant(conversation.pk, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        page = max(int(page), 1)
        limit = min(max(int(limit), 1), MESSAGE_CONFIG.MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        queryset = (
            Message.objects.filter(conversation=conversation)
            .exclude(deleted_for=user)
            .select_related("sender", "reply_to", "reply_to__sender")
            .prefetch_related("reactions", "receipts")
            .order_by("-created_at", "-id")
        )
        window = list(queryset[offset : offset + limit + 1])
        has_more = len(window) > limit
        messages = list(reversed(window[:limit]))

        return ServiceResult.success(
            MessagePage(messages=messages, page=page, limit=limit, has_more=has_more)
        )

    @classmethod
    def mark_as_read(cls, conversation: Conversation, user: User) -> ServiceResult[int]:
        """
        Reset the user's unread counter and add read receipts.

        Receipts are added to every message from someone else that the user
        has not read yet.

        Returns:
            ServiceResult with the number of messages newly marked read

        Error codes:
            NOT_PARTICIPANT
        """
        updated = Participant.objects.filter(conversation=conversation, user=user).update(
            unread_count=0, updated_at=timezone.now()
        )
        if not updated:
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        already_read = MessageReceipt.objects.filter(
            user=user, kind=ReceiptKind.READ, message__conversation=conversation
        ).values("message_id")
        unread_ids = list(
            Message.objects.filter(conversation=conversation)
            .exclude(sender=user)
            .exclude(id__in=already_read)
            .values_list("id", flat=True)
        )
        MessageReceipt.objects.bulk_create(
            [
                MessageReceipt(message_id=message_id, user=user, kind=ReceiptKind.READ)
                for message_id in unread_ids
            ],
            ignore_conflicts=True,
        )

        cls.get_logger().debug(
            f"User {user.pk} read {len(unread_ids)} messages in conversation {conversation.pk}"
        )
        return ServiceResult.success(len(unread_ids))

    @classmethod
    def unread_count(cls, conversation: Conversation, user: User) -> int:
        return (
            Participant.objects.filter(conversation=conversation, user=user)
            .values_list("unread_count", flat=True)
            .first()
            or 0
        )


# =============================================================================
# ReceiptService
# =============================================================================


class ReceiptService(BaseService):
    """Single-message read/delivered receipts from the socket path."""

    @classmethod
    def record_receipt(
        cls, user: User, conversation_id, message_id, kind: str
    ) -> ServiceResult[MessageReceipt]:
        """
        Persist a receipt for one message. Idempotent.

        Error codes:
            INVALID_RECEIPT, NOT_PARTICIPANT, MESSAGE_NOT_FOUND
        """
        if kind not in ReceiptKind.values:
            return ServiceResult.failure(
                f"Invalid receipt kind: {kind}", error_code="INVALID_RECEIPT"
            )
        if not ConversationService.is_participant(conversation_id, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        message = Message.objects.filter(pk=message_id, conversation_id=conversation_id).first()
        if message is None:
            return ServiceResult.failure("Message not found", error_code="MESSAGE_NOT_FOUND")

        receipt, _ = MessageReceipt.objects.get_or_create(message=message, user=user, kind=kind)
        return ServiceResult.success(receipt)


# =============================================================================
# ReactionService
# =============================================================================


class ReactionService(BaseService):
    """
    Message reactions.

    A user holds at most one reaction per message; add_reaction replaces it.
    Both operations return the message's full reaction list in creation order.
    """

    @classmethod
    def reaction_list(cls, message: Message) -> list[dict]:
        return [
            {
                "user_id": reaction.user_id,
                "emoji": reaction.emoji,
                "created_at": reaction.created_at.isoformat(),
            }
            for reaction in MessageReaction.objects.filter(message=message).order_by(
                "created_at", "id"
            )
        ]

    @classmethod
    def add_reaction(cls, message: Message, user: User, emoji: str) -> ServiceResult[list[dict]]:
        """
        Set the user's reaction to a message.

        Error codes:
            NOT_PARTICIPANT, MESSAGE_DELETED, INVALID_EMOJI
        """
        emoji = (emoji or "").strip()
        if not emoji or len(emoji) > REACTION_CONFIG.MAX_EMOJI_LENGTH:
            return ServiceResult.failure("Invalid reaction", error_code="INVALID_EMOJI")
        if not ConversationService.is_participant(message.conversation_id, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        if message.is_deleted:
            return ServiceResult.failure(
                "Cannot react to a deleted message", error_code="MESSAGE_DELETED"
            )

        with cls.atomic():
            MessageReaction.objects.filter(message=message, user=user).delete()
            MessageReaction.objects.create(message=message, user=user, emoji=emoji)

        return ServiceResult.success(cls.reaction_list(message))

    @classmethod
    def remove_reaction(cls, message: Message, user: User) -> ServiceResult[list[dict]]:
        """
        Remove the user's own reaction, if any.

        Error codes:
            NOT_PARTICIPANT
        """
        if not ConversationService.is_participant(message.conversation_id, user.pk):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        MessageReaction.objects.filter(message=message, user=user).delete()
        return ServiceResult.success(cls.reaction_list(message))
