"""
WebRTC call signaling relay.

Forwards offer, answer, rejection, hang-up and ICE candidate payloads
between peers. Payloads are opaque; no call state is stored, so any
participant may send any signal at any time and the relay simply routes
it.

Addressing:
    call_user targets a user id. Every session of that user receives
    incoming_call, whose `from` is the caller's session id so that the
    device that answers can reply to the exact calling device.

    The other signals target either a session id (the usual case, taken
    from `from`) or a user id. A value that names a live session is
    treated as a session; anything else as a user's personal scope.

Events:
    incoming_call   {signal, from, caller, call_type}
    call_accepted   {signal, from}
    call_rejected   {from}
    call_ended      {from}
    ice_candidate   {candidate, from}

In the last four, `from` is the sending user's id.
"""

from __future__ import annotations

import logging

from chat.events import EventName, OutboundEvent
from chat.presence import PresenceRegistry
from chat.rooms import personal_scope

logger = logging.getLogger(__name__)


class CallType:
    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in (cls.AUDIO, cls.VIDEO)


class CallSignalingRelay:
    """
    Builds call signaling events.

    Reads the presence registry only to tell sessions from user ids and to
    log calls to users with no connected session.
    """

    def __init__(self, registry: PresenceRegistry):
        self.registry = registry

    def _address(self, name: str, target, payload: dict) -> OutboundEvent:
        target_key = str(target)
        if self.registry.user_for(target_key) is not None:
            return OutboundEvent(name=name, payload=payload, sessions=(target_key,))
        return OutboundEvent(name=name, payload=payload, scopes=(personal_scope(target),))

    def initiate(
        self,
        target_user_id,
        signal,
        call_type: str,
        caller_session: str,
        caller_info: dict,
    ) -> OutboundEvent:
        """
        Ring every session of target_user_id.

        Args:
            target_user_id: User being called
            signal: Opaque SDP offer
            call_type: "audio" or "video"
            caller_session: Session id of the calling device
            caller_info: {id, full_name, avatar} of the caller
        """
        if not self.registry.is_online(target_user_id):
            logger.debug(f"Call to offline user {target_user_id} from {caller_session}")

        return OutboundEvent(
            name=EventName.INCOMING_CALL,
            payload={
                "signal": signal,
                "from": caller_session,
                "caller": caller_info,
                "call_type": call_type,
            },
            scopes=(personal_scope(target_user_id),),
        )

    def answer(self, target, signal, sender_user_id) -> OutboundEvent:
        return self._address(
            EventName.CALL_ACCEPTED,
            target,
            {"signal": signal, "from": sender_user_id},
        )

    def reject(self, target, sender_user_id) -> OutboundEvent:
        return self._address(EventName.CALL_REJECTED, target, {"from": sender_user_id})

    def end(self, target, sender_user_id) -> OutboundEvent:
        return self._address(EventName.CALL_ENDED, target, {"from": sender_user_id})

    def ice_candidate(self, target, candidate, sender_user_id) -> OutboundEvent:
        return self._address(
            EventName.ICE_CANDIDATE,
            target,
            {"candidate": candidate, "from": sender_user_id},
        )
