"""
Serializers for the chat API and real-time payloads.

Serializer Hierarchy:
    MessageSerializer: Message with decrypted content, reactions, receipts
    ReplyPreviewSerializer: Quoted message shown above a reply
    ParticipantSerializer: Participant with user info and unread count
    ConversationSerializer: Conversation with participants and last message
    ConversationCreateSerializer: Direct/group creation input
    ConversationUpdateSerializer: Group details input
    ParticipantsAddSerializer: Add-participants input
    MessageCreateSerializer: Send-message input
    MessageEditSerializer: Edit input
    ReactionSerializer: Reaction input

Design Decisions:
    - Read and write serializers are separate
    - Message content is decrypted here via MessageService.read_content(),
      so REST responses and WebSocket events share one representation
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG, REACTION_CONFIG
from chat.models import (
    Conversation,
    ConversationType,
    Message,
    MessageType,
    Participant,
    ReceiptKind,
)
from chat.services import MessageService


# =============================================================================
# Message Serializers
# =============================================================================


class ReplyPreviewSerializer(serializers.ModelSerializer):
    """Minimal representation of the message being replied to."""

    content = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["id", "sender_id", "message_type", "content", "is_deleted"]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return MessageService.read_content(obj)


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message representation.

    Used for history pages and as the payload of new_message and
    message_updated events.
    """

    sender = UserSummarySerializer(read_only=True, allow_null=True)
    content = serializers.SerializerMethodField(
        help_text="Decrypted content (placeholder if deleted or undecryptable)"
    )
    reply_to = ReplyPreviewSerializer(read_only=True, allow_null=True)
    reactions = serializers.SerializerMethodField()
    read_by = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "message_type",
            "content",
            "file_url",
            "file_name",
            "file_size",
            "mime_type",
            "reply_to",
            "reactions",
            "read_by",
            "is_edited",
            "edited_at",
            "is_deleted",
            "deleted_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return MessageService.read_content(obj)

    def get_reactions(self, obj: Message) -> list[dict]:
        reactions = sorted(obj.reactions.all(), key=lambda r: (r.created_at, r.pk))
        return [
            {
                "user_id": reaction.user_id,
                "emoji": reaction.emoji,
                "created_at": reaction.created_at.isoformat(),
            }
            for reaction in reactions
        ]

    def get_read_by(self, obj: Message) -> list[int]:
        return sorted(
            receipt.user_id
            for receipt in obj.receipts.all()
            if receipt.kind == ReceiptKind.READ
        )


def message_payload(message: Message) -> dict:
    """Plain dict form of a message for outbound events."""
    return dict(MessageSerializer(message).data)


# =============================================================================
# Conversation Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    joined_at = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Participant
        fields = ["user", "role", "unread_count", "joined_at"]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation with its participants and last message.

    unread_count is the requesting user's counter (context["request"]).
    """

    participants = ParticipantSerializer(many=True, read_only=True)
    last_message = MessageSerializer(read_only=True, allow_null=True)
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "title",
            "description",
            "created_by_id",
            "participants",
            "last_message",
            "last_message_at",
            "unread_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_unread_count(self, obj: Conversation) -> int:
        request = self.context.get("request")
        if request is None:
            return 0
        for participant in obj.participants.all():
            if participant.user_id == request.user.pk:
                return participant.unread_count
        return 0


class ConversationCreateSerializer(serializers.Serializer):
    """
    Input for creating a conversation.

    Direct: participant_ids holds exactly the other user.
    Group: participant_ids holds at least two other users; title required.
    """

    conversation_type = serializers.ChoiceField(choices=ConversationType.choices)
    participant_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )
    title = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_TITLE_LENGTH, required=False, allow_blank=True
    )
    description = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if (
            attrs["conversation_type"] == ConversationType.DIRECT
            and len(set(attrs["participant_ids"])) != 1
        ):
            raise serializers.ValidationError(
                {"participant_ids": "Direct conversations take exactly one other user."}
            )
        return attrs


class ConversationUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_TITLE_LENGTH, required=False
    )
    description = serializers.CharField(required=False, allow_blank=True)


class ParticipantsAddSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )


# =============================================================================
# Message Input Serializers
# =============================================================================


class MessageCreateSerializer(serializers.Serializer):
    """Input for sending a message. Type-specific rules live in MessageService."""

    message_type = serializers.ChoiceField(
        choices=MessageType.choices, default=MessageType.TEXT
    )
    content = serializers.CharField(
        required=False,
        allow_blank=True,
        trim_whitespace=False,
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
    )
    file_url = serializers.URLField(required=False, allow_blank=True, max_length=1000)
    file_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    file_size = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    mime_type = serializers.CharField(required=False, allow_blank=True, max_length=100)
    reply_to = serializers.IntegerField(required=False, allow_null=True)


class MessageEditSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH)


class ReactionSerializer(serializers.Serializer):
    emoji = serializers.CharField(max_length=REACTION_CONFIG.MAX_EMOJI_LENGTH)
