"""
Outbound real-time events.

Services and the signaling relay never send anything themselves. They
describe what should be delivered as an OutboundEvent, and the
EventDispatcher (chat.dispatcher) resolves the targets to sessions and
sends.

Targeting:
    scopes          broadcast scopes (conversation:<id>, user:<id>)
    sessions        explicit session ids
    broadcast_all   every connected session
    exclude_sessions / exclude_users   removed after resolution

Event names and payloads:
    new_message                 serialized message (plaintext content)
    message_updated             serialized message (plaintext content)
    message_deleted             {message_id, conversation_id}
    message_reaction            {message_id, conversation_id, reactions}
    user_typing                 {conversation_id, user_id, full_name, is_typing}
    message_read_receipt        {message_id, conversation_id, user_id, read_at}
    message_delivered_receipt   {message_id, conversation_id, user_id, delivered_at}
    user_status_change          {user_id, status, last_seen?}
    incoming_call / call_accepted / call_rejected / call_ended / ice_candidate
                                see chat.signaling
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from chat.rooms import conversation_scope, personal_scope


class EventName:
    """Names of outbound events as seen by clients."""

    NEW_MESSAGE = "new_message"
    MESSAGE_UPDATED = "message_updated"
    MESSAGE_DELETED = "message_deleted"
    MESSAGE_REACTION = "message_reaction"
    USER_TYPING = "user_typing"
    MESSAGE_READ_RECEIPT = "message_read_receipt"
    MESSAGE_DELIVERED_RECEIPT = "message_delivered_receipt"
    USER_STATUS_CHANGE = "user_status_change"
    INCOMING_CALL = "incoming_call"
    CALL_ACCEPTED = "call_accepted"
    CALL_REJECTED = "call_rejected"
    CALL_ENDED = "call_ended"
    ICE_CANDIDATE = "ice_candidate"
    ERROR = "error"


@dataclass(frozen=True)
class OutboundEvent:
    """An event together with the rule that selects its recipients."""

    name: str
    payload: dict[str, Any]
    scopes: tuple[str, ...] = ()
    sessions: tuple[str, ...] = ()
    broadcast_all: bool = False
    exclude_sessions: frozenset[str] = field(default_factory=frozenset)
    exclude_users: frozenset = field(default_factory=frozenset)


def _message_scopes(conversation_id, participant_ids: Iterable) -> tuple[str, ...]:
    # Participants' personal scopes are included so that devices not
    # currently viewing the conversation still receive the update.
    return (conversation_scope(conversation_id),) + tuple(
        personal_scope(user_id) for user_id in participant_ids
    )


# =============================================================================
# Message events
# =============================================================================


def new_message(conversation_id, participant_ids: Iterable, message: dict) -> OutboundEvent:
    return OutboundEvent(
        name=EventName.NEW_MESSAGE,
        payload=message,
        scopes=_message_scopes(conversation_id, participant_ids),
    )


def message_updated(
    conversation_id, participant_ids: Iterable, message: dict
) -> OutboundEvent:
    return OutboundEvent(
        name=EventName.MESSAGE_UPDATED,
        payload=message,
        scopes=_message_scopes(conversation_id, participant_ids),
    )


def message_deleted(
    conversation_id, participant_ids: Iterable, message_id
) -> OutboundEvent:
    return OutboundEvent(
        name=EventName.MESSAGE_DELETED,
        payload={"message_id": message_id, "conversation_id": conversation_id},
        scopes=_message_scopes(conversation_id, participant_ids),
    )


def message_reaction(
    conversation_id, participant_ids: Iterable, message_id, reactions: list[dict]
) -> OutboundEvent:
    return OutboundEvent(
        name=EventName.MESSAGE_REACTION,
        payload={
            "message_id": message_id,
            "conversation_id": conversation_id,
            "reactions": reactions,
        },
        scopes=_message_scopes(conversation_id, participant_ids),
    )


# =============================================================================
# Ephemeral conversation events
# =============================================================================


def user_typing(conversation_id, user_id, full_name: str, is_typing: bool) -> OutboundEvent:
    """Typing indicator; never echoed to any of the typist's own sessions."""
    return OutboundEvent(
        name=EventName.USER_TYPING,
        payload={
            "conversation_id": conversation_id,
            "user_id": user_id,
            "full_name": full_name,
            "is_typing": is_typing,
        },
        scopes=(conversation_scope(conversation_id),),
        exclude_users=frozenset({user_id}),
    )


def read_receipt(
    conversation_id, message_id, user_id, read_at: str, origin_session: str
) -> OutboundEvent:
    return OutboundEvent(
        name=EventName.MESSAGE_READ_RECEIPT,
        payload={
            "message_id": message_id,
            "conversation_id": conversation_id,
            "user_id": user_id,
            "read_at": read_at,
        },
        scopes=(conversation_scope(conversation_id),),
        exclude_sessions=frozenset({origin_session}),
    )


def delivered_receipt(
    conversation_id, message_id, user_id, delivered_at: str, origin_session: str
) -> OutboundEvent:
    return OutboundEvent(
        name=EventName.MESSAGE_DELIVERED_RECEIPT,
        payload={
            "message_id": message_id,
            "conversation_id": conversation_id,
            "user_id": user_id,
            "delivered_at": delivered_at,
        },
        scopes=(conversation_scope(conversation_id),),
        exclude_sessions=frozenset({origin_session}),
    )


# =============================================================================
# Presence events
# =============================================================================


def user_status_change(
    payload: dict,
    *,
    exclude_user=None,
    exclude_session: str | None = None,
) -> OutboundEvent:
    """
    Global status broadcast.

    Connect/disconnect transitions exclude every session of the subject
    user; explicit changes exclude only the session that asked.
    """
    return OutboundEvent(
        name=EventName.USER_STATUS_CHANGE,
        payload=payload,
        broadcast_all=True,
        exclude_users=frozenset({exclude_user}) if exclude_user is not None else frozenset(),
        exclude_sessions=frozenset({exclude_session}) if exclude_session else frozenset(),
    )
