"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation lifecycle and membership actions
- MessageViewSet: Message operations (nested under conversation)

URL Structure:
    /api/v1/chat/conversations/                                   GET, POST
    /api/v1/chat/conversations/{id}/                              GET, PATCH, DELETE
    /api/v1/chat/conversations/{id}/read/                         POST
    /api/v1/chat/conversations/{id}/leave/                        POST
    /api/v1/chat/conversations/{id}/participants/                 POST
    /api/v1/chat/conversations/{id}/participants/{user_id}/       DELETE
    /api/v1/chat/conversations/{id}/messages/                     GET, POST
    /api/v1/chat/conversations/{id}/messages/{pk}/                DELETE
    /api/v1/chat/conversations/{id}/messages/{pk}/edit/           PATCH
    /api/v1/chat/conversations/{id}/messages/{pk}/delete-for-me/  POST
    /api/v1/chat/conversations/{id}/messages/{pk}/reactions/      POST, DELETE

Design Decisions:
    - Views only translate HTTP to service calls and back
    - Real-time events are published only after the service call succeeded
    - Service error codes map to 403 (authorization), 404 (missing) or 400
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from chat import events
from chat.constants import MESSAGE_CONFIG
from chat.dispatcher import publish_event
from chat.models import Conversation, ConversationType, Message
from chat.permissions import IsConversationParticipant
from chat.serializers import (
    ConversationCreateSerializer,
    ConversationSerializer,
    ConversationUpdateSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    ParticipantsAddSerializer,
    ReactionSerializer,
    message_payload,
)
from chat.services import (
    ConversationService,
    MessageService,
    ParticipantService,
    ReactionService,
)
from core.services import ServiceResult

FORBIDDEN_CODES = frozenset({"NOT_PARTICIPANT", "NOT_ADMIN", "NOT_AUTHOR"})
NOT_FOUND_CODES = frozenset(
    {"CONVERSATION_NOT_FOUND", "MESSAGE_NOT_FOUND", "USER_NOT_FOUND"}
)


def service_error_response(result: ServiceResult) -> Response:
    """Translate a failed ServiceResult into an HTTP error response."""
    if result.error_code in FORBIDDEN_CODES:
        http_status = status.HTTP_403_FORBIDDEN
    elif result.error_code in NOT_FOUND_CODES:
        http_status = status.HTTP_404_NOT_FOUND
    else:
        http_status = status.HTTP_400_BAD_REQUEST

    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(body, status=http_status)


# =============================================================================
# Conversations
# =============================================================================


@extend_schema(tags=["Chat - Conversations"])
class ConversationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Conversations the authenticated user belongs to.

    list/retrieve use ConversationSerializer. Mutations go through
    ConversationService and ParticipantService.
    """

    serializer_class = ConversationSerializer
    permission_classes = [IsAuthenticated, IsConversationParticipant]

    def get_queryset(self):
        if self.action == "list":
            return ConversationService.list_for_user(self.request.user)
        return Conversation.objects.select_related(
            "last_message", "last_message__sender"
        ).prefetch_related("participants__user")

    def _detail(self, conversation: Conversation, http_status=status.HTTP_200_OK) -> Response:
        fresh = self.get_queryset().get(pk=conversation.pk)
        return Response(
            ConversationSerializer(fresh, context=self.get_serializer_context()).data,
            status=http_status,
        )

    @extend_schema(
        operation_id="create_conversation",
        summary="Create a direct or group conversation",
        request=ConversationCreateSerializer,
        responses={201: ConversationSerializer},
    )
    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["conversation_type"] == ConversationType.DIRECT:
            result = ConversationService.create_direct(request.user, data["participant_ids"][0])
        else:
            result = ConversationService.create_group(
                request.user,
                data["participant_ids"],
                title=data.get("title", ""),
                description=data.get("description", ""),
            )

        if not result.success:
            return service_error_response(result)
        return self._detail(result.data, status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="update_conversation",
        summary="Update group title or description",
        request=ConversationUpdateSerializer,
        responses={200: ConversationSerializer},
    )
    def partial_update(self, request, pk=None):
        conversation = self.get_object()
        serializer = ConversationUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.update_details(
            conversation,
            request.user,
            title=serializer.validated_data.get("title"),
            description=serializer.validated_data.get("description"),
        )
        if not result.success:
            return service_error_response(result)
        return self._detail(result.data)

    @extend_schema(operation_id="delete_conversation", summary="Delete conversation")
    def destroy(self, request, pk=None):
        conversation = self.get_object()

        result = ConversationService.delete_conversation(conversation, request.user)
        if not result.success:
            return service_error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(operation_id="mark_conversation_read", summary="Mark conversation as read")
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        """Reset unread count and add read receipts."""
        conversation = self.get_object()

        result = MessageService.mark_as_read(conversation, request.user)
        if not result.success:
            return service_error_response(result)
        return Response({"status": "read", "marked": result.data})

    @extend_schema(operation_id="leave_conversation", summary="Leave group")
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        conversation = self.get_object()

        result = ParticipantService.leave(conversation, request.user)
        if not result.success:
            return service_error_response(result)

        departure = result.data
        return Response(
            {
                "status": "left",
                "conversation_deleted": departure.conversation_deleted,
                "promoted_user_id": departure.promoted_user_id,
            }
        )

    @extend_schema(
        operation_id="add_participants",
        summary="Add participants to group",
        request=ParticipantsAddSerializer,
        responses={200: ConversationSerializer},
    )
    @action(detail=True, methods=["post"])
    def participants(self, request, pk=None):
        conversation = self.get_object()
        serializer = ParticipantsAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ParticipantService.add_participants(
            conversation, request.user, serializer.validated_data["user_ids"]
        )
        if not result.success:
            return service_error_response(result)
        return self._detail(conversation)

    @extend_schema(
        operation_id="remove_participant",
        summary="Remove participant from group",
        request=None,
    )
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"participants/(?P<user_id>[0-9]+)",
        url_name="remove-participant",
    )
    def remove_participant(self, request, pk=None, user_id=None):
        conversation = self.get_object()

        result = ParticipantService.remove_participant(
            conversation, request.user, int(user_id)
        )
        if not result.success:
            return service_error_response(result)
        return Response(
            {
                "status": "removed",
                "conversation_deleted": result.data.conversation_deleted,
                "promoted_user_id": result.data.promoted_user_id,
            }
        )


# =============================================================================
# Messages
# =============================================================================


@extend_schema(tags=["Chat - Messages"])
class MessageViewSet(viewsets.GenericViewSet):
    """
    Messages of one conversation (conversation_pk from the URL).

    Every mutation publishes its real-time event to the conversation scope
    and to every participant's personal scope.
    """

    serializer_class = MessageSerializer
    permission_classes = [IsAuthenticated]

    def _conversation(self) -> ServiceResult[Conversation]:
        return ConversationService.get_for_participant(
            self.kwargs["conversation_pk"], self.request.user
        )

    def _message(self) -> ServiceResult[Message]:
        result = MessageService.get_for_participant(self.kwargs["pk"], self.request.user)
        if result.success and result.data.conversation_id != int(self.kwargs["conversation_pk"]):
            return ServiceResult.failure("Message not found", error_code="MESSAGE_NOT_FOUND")
        return result

    @extend_schema(
        operation_id="list_messages",
        summary="Conversation history",
        parameters=[
            OpenApiParameter("page", OpenApiTypes.INT, description="1 = newest page"),
            OpenApiParameter(
                "limit",
                OpenApiTypes.INT,
                description=f"Page size (max {MESSAGE_CONFIG.MAX_PAGE_SIZE})",
            ),
        ],
    )
    def list(self, request, conversation_pk=None):
        found = self._conversation()
        if not found.success:
            return service_error_response(found)

        try:
            page = int(request.query_params.get("page", 1))
            limit = int(request.query_params.get("limit", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE))
        except ValueError:
            return Response(
                {"error": "page and limit must be integers", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = MessageService.list_messages(found.data, request.user, page=page, limit=limit)
        if not result.success:
            return service_error_response(result)

        history = result.data
        return Response(
            {
                "results": MessageSerializer(history.messages, many=True).data,
                "page": history.page,
                "limit": history.limit,
                "has_more": history.has_more,
            }
        )

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
    )
    def create(self, request, conversation_pk=None):
        found = self._conversation()
        if not found.success:
            return service_error_response(found)
        conversation = found.data

        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = MessageService.send_message(
            conversation,
            request.user,
            message_type=data["message_type"],
            content=data.get("content", ""),
            file_url=data.get("file_url", ""),
            file_name=data.get("file_name", ""),
            file_size=data.get("file_size"),
            mime_type=data.get("mime_type", ""),
            reply_to_id=data.get("reply_to"),
        )
        if not result.success:
            return service_error_response(result)

        payload = message_payload(result.data)
        publish_event(
            events.new_message(conversation.pk, conversation.participant_user_ids(), payload)
        )
        return Response(payload, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageEditSerializer,
        responses={200: MessageSerializer},
    )
    @action(detail=True, methods=["patch"])
    def edit(self, request, conversation_pk=None, pk=None):
        found = self._message()
        if not found.success:
            return service_error_response(found)

        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.edit_message(
            found.data, request.user, serializer.validated_data["content"]
        )
        if not result.success:
            return service_error_response(result)

        message = result.data
        payload = message_payload(message)
        publish_event(
            events.message_updated(
                message.conversation_id, message.conversation.participant_user_ids(), payload
            )
        )
        return Response(payload)

    @extend_schema(operation_id="delete_message", summary="Delete message for everyone")
    def destroy(self, request, conversation_pk=None, pk=None):
        found = self._message()
        if not found.success:
            return service_error_response(found)

        result = MessageService.delete_for_everyone(found.data, request.user)
        if not result.success:
            return service_error_response(result)

        message = result.data
        publish_event(
            events.message_deleted(
                message.conversation_id, message.conversation.participant_user_ids(), message.pk
            )
        )
        return Response({"status": "deleted"})

    @extend_schema(operation_id="delete_message_for_me", summary="Hide message for me", request=None)
    @action(detail=True, methods=["post"], url_path="delete-for-me")
    def delete_for_me(self, request, conversation_pk=None, pk=None):
        found = self._message()
        if not found.success:
            return service_error_response(found)

        result = MessageService.delete_for_me(found.data, request.user)
        if not result.success:
            return service_error_response(result)
        return Response({"status": "hidden"})

    @extend_schema(
        operation_id="message_reactions",
        summary="Set (POST) or remove (DELETE) your reaction",
        request=ReactionSerializer,
    )
    @action(detail=True, methods=["post", "delete"])
    def reactions(self, request, conversation_pk=None, pk=None):
        found = self._message()
        if not found.success:
            return service_error_response(found)
        message = found.data

        if request.method == "DELETE":
            result = ReactionService.remove_reaction(message, request.user)
        else:
            serializer = ReactionSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            result = ReactionService.add_reaction(
                message, request.user, serializer.validated_data["emoji"]
            )
        if not result.success:
            return service_error_response(result)

        publish_event(
            events.message_reaction(
                message.conversation_id,
                message.conversation.participant_user_ids(),
                message.pk,
                result.data,
            )
        )
        return Response({"message_id": message.pk, "reactions": result.data})
