"""
Permission classes for chat API.

- IsConversationParticipant: User currently belongs to the conversation

Finer-grained rules (admin-only, author-only) are enforced by the service
layer, which reports them with error codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.models import Conversation, Message, Participant

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsConversationParticipant(permissions.BasePermission):
    """
    Allows access only to participants of the conversation.

    Accepts a Conversation or a Message (checked against its conversation).
    """

    message = "You are not a participant in this conversation."

    def has_object_permission(
        self, request: Request, view: APIView, obj: Conversation | Message
    ) -> bool:
        if not request.user.is_authenticated:
            return False

        conversation_id = obj.conversation_id if isinstance(obj, Message) else obj.pk
        return Participant.objects.filter(
            conversation_id=conversation_id,
            user=request.user,
        ).exists()
