"""
WebSocket consumer for the real-time chat core.

One connection per client device. The connection is not tied to a single
conversation: after connecting, the client joins the conversations it is
viewing and receives events for them, plus everything addressed to the
user personally (messages in other conversations, calls).

Consumers:
    ChatConsumer: Connection lifecycle and inbound event routing

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. An anonymous
    scope is closed with code 4001 before anything is registered.

Connection lifecycle:
    CONNECTING -> AUTHENTICATING -> ACTIVE -> DISCONNECTED
    - ACTIVE: joined personal scope user:<id>, registered in presence
    - DISCONNECTED: left every scope, deregistered (terminal)
    - DISCONNECTED is also reached when a handler fails unexpectedly

Frames are JSON objects {"type": <event>, "data": {...}}.

Message Types (from client):
    join_chat {conversation_id}            leave_chat {conversation_id}
    typing_start {conversation_id}         typing_stop {conversation_id}
    message_read {message_id, conversation_id}
    message_delivered {message_id, conversation_id}
    change_status {status}
    call_user {target_user_id, signal_data, call_type, caller?}
    answer_call {to, signal}               reject_call {to}
    end_call {to}                          ice_candidate {to, candidate}

Message Types (to client):
    joined_chat / left_chat acknowledgements, error, and every event in
    chat.events.EventName
"""

from __future__ import annotations

import enum
import logging

from channels.db import database_sync_to_async
from channels.exceptions import StopConsumer
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.db import DatabaseError

from authentication.services import UserStatusService
from chat import events
from chat.constants import REALTIME_CONFIG
from chat.dispatcher import get_event_dispatcher
from chat.events import EventName
from chat.models import ReceiptKind
from chat.presence import PresenceTransition
from chat.rooms import conversation_scope, personal_scope
from chat.services import ConversationService, ReceiptService
from chat.signaling import CallSignalingRelay, CallType
from core.exceptions import (
    BaseApplicationError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


def _require(data: dict, *keys: str) -> list:
    missing = [key for key in keys if data.get(key) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            error_code="VALIDATION_ERROR",
        )
    return [data[key] for key in keys]


def _as_id(value, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer id") from None


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for one client session.

    Attributes:
        state: ConnectionState of this session
        user: Authenticated user (after connect)
        dispatcher: EventDispatcher shared by all sessions in the process
        relay: CallSignalingRelay bound to the dispatcher's registry
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.state = ConnectionState.CONNECTING
        self.user = None
        self.dispatcher = get_event_dispatcher()
        self.relay = CallSignalingRelay(self.dispatcher.registry)
        self.handlers = {
            "join_chat": self.handle_join_chat,
            "leave_chat": self.handle_leave_chat,
            "typing_start": self.handle_typing_start,
            "typing_stop": self.handle_typing_stop,
            "message_read": self.handle_message_read,
            "message_delivered": self.handle_message_delivered,
            "change_status": self.handle_change_status,
            "call_user": self.handle_call_user,
            "answer_call": self.handle_answer_call,
            "reject_call": self.handle_reject_call,
            "end_call": self.handle_end_call,
            "ice_candidate": self.handle_ice_candidate,
        }

    @property
    def registry(self):
        return self.dispatcher.registry

    @property
    def router(self):
        return self.dispatcher.router

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self):
        self.state = ConnectionState.AUTHENTICATING
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            error = self.scope.get("auth_error")
            logger.warning(f"Rejected unauthenticated connection: {error}")
            self.state = ConnectionState.DISCONNECTED
            await self.close(code=REALTIME_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        self.user = user
        await self.accept()

        self.router.join(personal_scope(user.pk), self.channel_name)
        transition = self.registry.register(self.channel_name, user.pk)
        self.state = ConnectionState.ACTIVE
        logger.info(f"User {user.pk} connected ({self.channel_name})")

        if transition:
            await self._announce(transition, exclude_user=user.pk)

    async def disconnect(self, close_code):
        await self.release_session(f"closed ({close_code})")

    async def dispatch(self, message):
        try:
            await super().dispatch(message)
        except StopConsumer:
            raise
        except Exception:
            logger.exception(f"Session {self.channel_name} failed on {message.get('type')}")
            await self.release_session("failed")
            raise

    async def release_session(self, reason: str) -> None:
        """Leave every scope and deregister. Safe to call more than once."""
        if self.state is not ConnectionState.ACTIVE:
            self.state = ConnectionState.DISCONNECTED
            return

        self.state = ConnectionState.DISCONNECTED
        self.router.leave_all(self.channel_name)
        transition = self.registry.deregister(self.channel_name)
        logger.info(f"User {self.user.pk} disconnected: {reason}")

        if transition:
            await self._announce(transition, exclude_user=self.user.pk)

    async def _announce(self, transition: PresenceTransition, **exclude) -> None:
        """Broadcast a presence transition, then persist it in the background."""
        await self.dispatcher.publish(
            events.user_status_change(transition.as_payload(), **exclude)
        )
        last_seen = transition.at if transition.is_offline else None
        self.dispatcher.run_in_background(
            database_sync_to_async(UserStatusService.record_status)(
                transition.user_id, transition.status, last_seen=last_seen
            ),
            f"record status {transition.status} for user {transition.user_id}",
        )

    # =========================================================================
    # Inbound routing
    # =========================================================================

    async def receive_json(self, content, **kwargs):
        if self.state is not ConnectionState.ACTIVE:
            return

        if not isinstance(content, dict) or not isinstance(content.get("type"), str):
            await self.send_error("Malformed event", "MALFORMED_EVENT")
            return

        event_type = content["type"]
        data = content.get("data") or {}
        handler = self.handlers.get(event_type)
        if handler is None:
            await self.send_error(f"Unknown event type: {event_type}", "UNKNOWN_EVENT")
            return
        if not isinstance(data, dict):
            await self.send_error("Event data must be an object", "MALFORMED_EVENT")
            return

        try:
            await handler(data)
        except BaseApplicationError as e:
            logger.debug(f"{event_type} from user {self.user.pk} failed: {e}")
            await self.send_error(e.message, e.error_code)
        except DatabaseError:
            logger.exception(f"{event_type} from user {self.user.pk} hit a database error")
            error = PersistenceError(f"Could not complete {event_type}, please retry")
            await self.send_error(error.message, error.error_code)

    async def send_error(self, message: str, error_code: str) -> None:
        """Report a failed client action to this session only."""
        await self.send_json(
            {"type": EventName.ERROR, "data": {"message": message, "error_code": error_code}}
        )

    # =========================================================================
    # Conversation scopes
    # =========================================================================

    async def handle_join_chat(self, data: dict) -> None:
        (raw_id,) = _require(data, "conversation_id")
        conversation_id = _as_id(raw_id, "conversation_id")

        allowed = await database_sync_to_async(ConversationService.is_participant)(
            conversation_id, self.user.pk
        )
        if not allowed:
            raise PermissionDeniedError(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        self.router.join(conversation_scope(conversation_id), self.channel_name)
        await self.send_json({"type": "joined_chat", "data": {"conversation_id": conversation_id}})

    async def handle_leave_chat(self, data: dict) -> None:
        (raw_id,) = _require(data, "conversation_id")
        conversation_id = _as_id(raw_id, "conversation_id")

        self.router.leave(conversation_scope(conversation_id), self.channel_name)
        await self.send_json({"type": "left_chat", "data": {"conversation_id": conversation_id}})

    def _joined_conversation(self, data: dict) -> int:
        (raw_id,) = _require(data, "conversation_id")
        conversation_id = _as_id(raw_id, "conversation_id")
        if not self.router.is_member(conversation_scope(conversation_id), self.channel_name):
            raise PermissionDeniedError(
                "Join the conversation first", error_code="NOT_JOINED"
            )
        return conversation_id

    async def _typing(self, data: dict, is_typing: bool) -> None:
        conversation_id = self._joined_conversation(data)
        await self.dispatcher.publish(
            events.user_typing(
                conversation_id, self.user.pk, self.user.get_full_name(), is_typing
            )
        )

    async def handle_typing_start(self, data: dict) -> None:
        await self._typing(data, True)

    async def handle_typing_stop(self, data: dict) -> None:
        await self._typing(data, False)

    # =========================================================================
    # Receipts
    # =========================================================================

    async def _receipt(self, data: dict, kind: str):
        raw_message_id, raw_conversation_id = _require(data, "message_id", "conversation_id")
        message_id = _as_id(raw_message_id, "message_id")
        conversation_id = _as_id(raw_conversation_id, "conversation_id")

        result = await database_sync_to_async(ReceiptService.record_receipt)(
            self.user, conversation_id, message_id, kind
        )
        result.raise_for_failure(ValidationError)
        return conversation_id, message_id, result.data.created_at.isoformat()

    async def handle_message_read(self, data: dict) -> None:
        conversation_id, message_id, at = await self._receipt(data, ReceiptKind.READ)
        await self.dispatcher.publish(
            events.read_receipt(conversation_id, message_id, self.user.pk, at, self.channel_name)
        )

    async def handle_message_delivered(self, data: dict) -> None:
        conversation_id, message_id, at = await self._receipt(data, ReceiptKind.DELIVERED)
        await self.dispatcher.publish(
            events.delivered_receipt(
                conversation_id, message_id, self.user.pk, at, self.channel_name
            )
        )

    # =========================================================================
    # Presence
    # =========================================================================

    async def handle_change_status(self, data: dict) -> None:
        (status,) = _require(data, "status")
        result = await database_sync_to_async(UserStatusService.change_status)(
            self.user, status
        )
        result.raise_for_failure(ValidationError)

        transition = self.registry.set_status(self.user.pk, status) or PresenceTransition(
            user_id=self.user.pk, status=status
        )
        await self.dispatcher.publish(
            events.user_status_change(transition.as_payload(), exclude_session=self.channel_name)
        )

    # =========================================================================
    # Call signaling
    # =========================================================================

    async def handle_call_user(self, data: dict) -> None:
        raw_target, signal = _require(data, "target_user_id", "signal_data")
        call_type = data.get("call_type") or CallType.VIDEO
        if not CallType.is_valid(call_type):
            raise ValidationError(f"Invalid call type: {call_type}", error_code="INVALID_CALL_TYPE")

        caller = data.get("caller") or self.user.caller_info()
        await self.dispatcher.publish(
            self.relay.initiate(
                _as_id(raw_target, "target_user_id"),
                signal,
                call_type,
                caller_session=self.channel_name,
                caller_info=caller,
            )
        )

    async def handle_answer_call(self, data: dict) -> None:
        target, signal = _require(data, "to", "signal")
        await self.dispatcher.publish(self.relay.answer(target, signal, self.user.pk))

    async def handle_reject_call(self, data: dict) -> None:
        (target,) = _require(data, "to")
        await self.dispatcher.publish(self.relay.reject(target, self.user.pk))

    async def handle_end_call(self, data: dict) -> None:
        (target,) = _require(data, "to")
        await self.dispatcher.publish(self.relay.end(target, self.user.pk))

    async def handle_ice_candidate(self, data: dict) -> None:
        target, candidate = _require(data, "to", "candidate")
        await self.dispatcher.publish(self.relay.ice_candidate(target, candidate, self.user.pk))

    # =========================================================================
    # Channel layer handlers
    # =========================================================================

    async def chat_event(self, event):
        """Forward an outbound event from the dispatcher to the socket."""
        await self.send_json({"type": event["event"], "data": event["data"]})
