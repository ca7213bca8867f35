"""
Tests for the chat service layer.

Test Organization:
    - One class per service method or closely related group
    - Tests assert on ServiceResult state, error codes and database state
"""

import asyncio

import pytest
from channels.db import database_sync_to_async

from authentication.tests.factories import UserFactory
from chat.constants import MESSAGE_CONFIG
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
from chat.services import (
    ConversationService,
    MessageService,
    ParticipantService,
    ReactionService,
    ReceiptService,
)
from chat.tests.factories import MessageFactory


def send_text(conversation, sender, text="hello"):
    result = MessageService.send_message(conversation, sender, MessageType.TEXT, content=text)
    assert result.success, result.error
    return result.data


# =============================================================================
# ConversationService
# =============================================================================


class TestCreateDirect:
    def test_creates_conversation_with_both_users(self, alice, bob):
        result = ConversationService.create_direct(alice, bob.pk)

        assert result.success
        conversation = result.data
        assert conversation.conversation_type == ConversationType.DIRECT
        assert set(conversation.participant_user_ids()) == {alice.pk, bob.pk}
        assert Participant.objects.filter(conversation=conversation, role__isnull=True).count() == 2

    def test_returns_existing_conversation_for_same_pair(self, alice, bob):
        first = ConversationService.create_direct(alice, bob.pk).data

        second = ConversationService.create_direct(bob, alice.pk).data

        assert first.pk == second.pk
        assert DirectConversationPair.objects.count() == 1

    def test_pair_is_stored_in_canonical_order(self, alice, bob):
        conversation = ConversationService.create_direct(bob, alice.pk).data

        pair = conversation.direct_pair
        assert pair.user_lower_id < pair.user_higher_id

    def test_rejects_self_conversation(self, alice):
        result = ConversationService.create_direct(alice, alice.pk)

        assert not result.success
        assert result.error_code == "SELF_CONVERSATION"

    def test_rejects_unknown_user(self, alice):
        result = ConversationService.create_direct(alice, 999999)

        assert result.error_code == "USER_NOT_FOUND"


class TestCreateGroup:
    def test_creator_becomes_admin(self, alice, bob, carol):
        result = ConversationService.create_group(alice, [bob.pk, carol.pk], title="Team")

        assert result.success
        roles = dict(result.data.participants.values_list("user_id", "role"))
        assert roles == {
            alice.pk: ParticipantRole.ADMIN,
            bob.pk: ParticipantRole.MEMBER,
            carol.pk: ParticipantRole.MEMBER,
        }

    def test_requires_title(self, alice, bob, carol):
        result = ConversationService.create_group(alice, [bob.pk, carol.pk], title="   ")

        assert result.error_code == "TITLE_REQUIRED"

    def test_requires_three_participants_including_creator(self, alice, bob):
        result = ConversationService.create_group(alice, [bob.pk], title="Pair")

        assert result.error_code == "TOO_FEW_PARTICIPANTS"
        assert not Conversation.objects.exists()

    def test_creator_in_list_is_not_counted_twice(self, alice, bob):
        result = ConversationService.create_group(alice, [alice.pk, bob.pk], title="Pair")

        assert result.error_code == "TOO_FEW_PARTICIPANTS"

    def test_rejects_unknown_users(self, alice, bob):
        result = ConversationService.create_group(alice, [bob.pk, 999999], title="Team")

        assert result.error_code == "USER_NOT_FOUND"


class TestUpdateDetails:
    def test_admin_renames_group(self, group, alice):
        result = ConversationService.update_details(group, alice, title="Renamed")

        assert result.success
        group.refresh_from_db()
        assert group.title == "Renamed"

    def test_member_cannot_rename(self, group, bob):
        result = ConversationService.update_details(group, bob, title="Mine now")

        assert result.error_code == "NOT_ADMIN"

    def test_direct_conversation_has_no_details(self, direct, alice):
        result = ConversationService.update_details(direct, alice, title="Nope")

        assert result.error_code == "NOT_GROUP"


class TestDeleteConversation:
    def test_admin_deletes_group_with_messages(self, group, alice, bob):
        send_text(group, bob)

        result = ConversationService.delete_conversation(group, alice)

        assert result.success
        assert result.data == group.pk
        assert not Conversation.objects.filter(pk=result.data).exists()
        assert not Message.objects.exists()
        assert not Participant.objects.exists()

    def test_member_cannot_delete_group(self, group, bob):
        result = ConversationService.delete_conversation(group, bob)

        assert result.error_code == "NOT_ADMIN"
        assert Conversation.objects.filter(pk=group.pk).exists()

    def test_direct_participant_can_delete(self, direct, bob):
        result = ConversationService.delete_conversation(direct, bob)

        assert result.success
        assert not DirectConversationPair.objects.exists()

    def test_outsider_cannot_delete_direct(self, direct, outsider):
        result = ConversationService.delete_conversation(direct, outsider)

        assert result.error_code == "NOT_PARTICIPANT"


class TestListForUser:
    def test_most_recent_activity_first(self, alice, bob, carol):
        older = ConversationService.create_direct(alice, bob.pk).data
        newer = ConversationService.create_direct(alice, carol.pk).data
        send_text(older, bob)

        conversations = list(ConversationService.list_for_user(alice))

        assert [c.pk for c in conversations] == [older.pk, newer.pk]

    def test_excludes_conversations_of_others(self, direct, outsider):
        assert list(ConversationService.list_for_user(outsider)) == []


# =============================================================================
# ParticipantService
# =============================================================================


class TestAddParticipants:
    def test_admin_adds_member(self, group, alice, outsider):
        result = ParticipantService.add_participants(group, alice, [outsider.pk])

        assert result.success
        assert len(result.data) == 1
        assert ConversationService.is_participant(group.pk, outsider.pk)

    def test_existing_members_are_skipped(self, group, alice, bob):
        result = ParticipantService.add_participants(group, alice, [bob.pk])

        assert result.data == []
        assert group.participants.count() == 3

    def test_member_cannot_add(self, group, bob, outsider):
        result = ParticipantService.add_participants(group, bob, [outsider.pk])

        assert result.error_code == "NOT_ADMIN"

    def test_direct_conversation_rejected(self, direct, alice, outsider):
        result = ParticipantService.add_participants(direct, alice, [outsider.pk])

        assert result.error_code == "NOT_GROUP"


class TestRemoveParticipant:
    def test_admin_removes_member(self, group, alice, bob):
        result = ParticipantService.remove_participant(group, alice, bob.pk)

        assert result.success
        assert result.data.user_id == bob.pk
        assert not ConversationService.is_participant(group.pk, bob.pk)

    def test_member_cannot_remove(self, group, bob, carol):
        result = ParticipantService.remove_participant(group, bob, carol.pk)

        assert result.error_code == "NOT_ADMIN"

    def test_removing_non_member(self, group, alice, outsider):
        result = ParticipantService.remove_participant(group, alice, outsider.pk)

        assert result.error_code == "NOT_PARTICIPANT"

    def test_admin_removing_self_promotes_oldest(self, group, alice, bob):
        result = ParticipantService.remove_participant(group, alice, alice.pk)

        assert result.data.promoted_user_id == bob.pk


class TestLeave:
    def test_member_leaves(self, group, carol):
        result = ParticipantService.leave(group, carol)

        assert result.success
        assert result.data.promoted_user_id is None
        assert not result.data.conversation_deleted
        assert group.participants.count() == 2

    def test_last_admin_leaving_promotes_oldest_participant(self, group, alice, bob):
        result = ParticipantService.leave(group, alice)

        assert result.data.promoted_user_id == bob.pk
        assert Participant.objects.get(conversation=group, user=bob).role == ParticipantRole.ADMIN

    def test_group_always_keeps_an_admin(self, group, alice, bob, carol):
        ParticipantService.leave(group, alice)
        ParticipantService.leave(group, bob)

        assert Participant.objects.get(conversation=group, user=carol).is_admin

    def test_last_participant_leaving_deletes_group(self, group, alice, bob, carol):
        send_text(group, carol)
        ParticipantService.leave(group, alice)
        ParticipantService.leave(group, bob)

        result = ParticipantService.leave(group, carol)

        assert result.data.conversation_deleted
        assert not Conversation.objects.filter(pk=group.pk).exists()
        assert not Message.objects.exists()

    def test_cannot_leave_direct_conversation(self, direct, alice):
        result = ParticipantService.leave(direct, alice)

        assert result.error_code == "NOT_GROUP"

    def test_non_member_cannot_leave(self, group, outsider):
        result = ParticipantService.leave(group, outsider)

        assert result.error_code == "NOT_PARTICIPANT"


# =============================================================================
# MessageService
# =============================================================================


class TestSendMessage:
    def test_content_is_encrypted_at_rest(self, direct, alice):
        message = send_text(direct, alice, "secret plans")

        stored = Message.objects.get(pk=message.pk)
        assert stored.is_encrypted
        assert stored.content != "secret plans"
        assert MessageService.read_content(stored) == "secret plans"

    def test_updates_last_message(self, direct, alice):
        message = send_text(direct, alice)

        direct.refresh_from_db()
        assert direct.last_message_id == message.pk
        assert direct.last_message_at == message.created_at

    def test_increments_unread_for_everyone_but_sender(self, group, alice, bob, carol):
        send_text(group, alice)
        send_text(group, alice)
        send_text(group, bob)

        assert MessageService.unread_count(group, alice) == 1
        assert MessageService.unread_count(group, bob) == 2
        assert MessageService.unread_count(group, carol) == 3

    @pytest.mark.django_db(transaction=True)
    @pytest.mark.asyncio
    async def test_concurrent_senders_increment_unread_exactly(self, group, alice, bob, carol):
        """
        Interleaved sends from several participants never lose an increment.

        Each send loads its own Conversation, as separate requests would.
        """
        sends = {alice: 3, bob: 2, carol: 4}

        def send_as(sender, text):
            conversation = Conversation.objects.get(pk=group.pk)
            return MessageService.send_message(
                conversation, sender, MessageType.TEXT, content=text
            )

        results = await asyncio.gather(
            *(
                database_sync_to_async(send_as)(sender, f"{sender.pk}-{i}")
                for sender, count in sends.items()
                for i in range(count)
            )
        )

        assert all(result.success for result in results)
        total = sum(sends.values())
        for user, sent in sends.items():
            participant = await database_sync_to_async(Participant.objects.get)(
                conversation_id=group.pk, user=user
            )
            assert participant.unread_count == total - sent

    def test_outsider_cannot_send(self, direct, outsider):
        result = MessageService.send_message(direct, outsider, MessageType.TEXT, content="hi")

        assert result.error_code == "NOT_PARTICIPANT"
        assert not Message.objects.exists()

    def test_text_requires_content(self, direct, alice):
        result = MessageService.send_message(direct, alice, MessageType.TEXT, content="   ")

        assert result.error_code == "CONTENT_REQUIRED"

    def test_content_length_limit(self, direct, alice):
        result = MessageService.send_message(
            direct,
            alice,
            MessageType.TEXT,
            content="x" * (MESSAGE_CONFIG.MAX_CONTENT_LENGTH + 1),
        )

        assert result.error_code == "CONTENT_TOO_LONG"

    def test_media_requires_file_url(self, direct, alice):
        result = MessageService.send_message(direct, alice, MessageType.IMAGE, content="caption")

        assert result.error_code == "FILE_REQUIRED"

    def test_media_with_file_and_caption(self, direct, alice):
        result = MessageService.send_message(
            direct,
            alice,
            MessageType.IMAGE,
            content="look",
            file_url="https://cdn.example.com/cat.png",
            file_name="cat.png",
            file_size=2048,
            mime_type="image/png",
        )

        assert result.success
        assert MessageService.read_content(result.data) == "look"
        assert result.data.file_size == 2048

    def test_media_without_caption_stores_empty_content(self, direct, alice):
        result = MessageService.send_message(
            direct, alice, MessageType.FILE, file_url="https://cdn.example.com/a.pdf"
        )

        assert result.data.content == ""
        assert not result.data.is_encrypted

    def test_invalid_type(self, direct, alice):
        result = MessageService.send_message(direct, alice, "sticker", content="hi")

        assert result.error_code == "INVALID_MESSAGE_TYPE"

    def test_reply_in_same_conversation(self, direct, alice, bob):
        original = send_text(direct, alice, "question")

        result = MessageService.send_message(
            direct, bob, MessageType.TEXT, content="answer", reply_to_id=original.pk
        )

        assert result.data.reply_to_id == original.pk

    def test_reply_to_other_conversation_is_dropped(self, direct, group, alice):
        foreign = send_text(group, alice)

        result = MessageService.send_message(
            direct, alice, MessageType.TEXT, content="hi", reply_to_id=foreign.pk
        )

        assert result.data.reply_to_id is None


class TestReadContent:
    def test_undecryptable_content_shows_placeholder(self, direct, alice):
        message = MessageFactory(conversation=direct, sender=alice, content="garbage", is_encrypted=True)

        assert MessageService.read_content(message) == MESSAGE_CONFIG.DECRYPTION_FAILED_PLACEHOLDER

    def test_deleted_message_shows_placeholder(self, direct, alice):
        message = send_text(direct, alice)
        MessageService.delete_for_everyone(message, alice)

        assert MessageService.read_content(message) == MESSAGE_CONFIG.DELETED_PLACEHOLDER


class TestEditMessage:
    def test_author_edits_text(self, direct, alice):
        message = send_text(direct, alice, "teh")

        result = MessageService.edit_message(message, alice, "the")

        assert result.success
        edited = Message.objects.get(pk=message.pk)
        assert edited.is_edited
        assert edited.edited_at is not None
        assert MessageService.read_content(edited) == "the"

    def test_only_author_may_edit(self, direct, alice, bob):
        message = send_text(direct, alice)

        result = MessageService.edit_message(message, bob, "hijack")

        assert result.error_code == "NOT_AUTHOR"

    def test_media_is_not_editable(self, direct, alice):
        message = MessageService.send_message(
            direct, alice, MessageType.IMAGE, file_url="https://cdn.example.com/x.png"
        ).data

        result = MessageService.edit_message(message, alice, "caption")

        assert result.error_code == "NOT_EDITABLE"

    def test_deleted_message_is_not_editable(self, direct, alice):
        message = send_text(direct, alice)
        MessageService.delete_for_everyone(message, alice)

        result = MessageService.edit_message(message, alice, "back")

        assert result.error_code == "MESSAGE_DELETED"


class TestDeleteMessage:
    def test_delete_for_everyone_clears_content(self, direct, alice):
        message = send_text(direct, alice)

        result = MessageService.delete_for_everyone(message, alice)

        assert result.success
        stored = Message.objects.get(pk=message.pk)
        assert stored.is_deleted
        assert stored.deleted_at is not None
        assert stored.content == ""

    def test_delete_for_everyone_requires_author(self, direct, alice, bob):
        message = send_text(direct, alice)

        assert MessageService.delete_for_everyone(message, bob).error_code == "NOT_AUTHOR"

    def test_delete_twice(self, direct, alice):
        message = send_text(direct, alice)
        MessageService.delete_for_everyone(message, alice)

        assert MessageService.delete_for_everyone(message, alice).error_code == "ALREADY_DELETED"

    def test_delete_for_me_hides_only_for_that_user(self, direct, alice, bob):
        message = send_text(direct, alice)

        MessageService.delete_for_me(message, bob)

        bob_page = MessageService.list_messages(direct, bob).data
        alice_page = MessageService.list_messages(direct, alice).data
        assert bob_page.messages == []
        assert [m.pk for m in alice_page.messages] == [message.pk]

    def test_delete_for_me_is_idempotent(self, direct, alice):
        message = send_text(direct, alice)

        MessageService.delete_for_me(message, alice)
        MessageService.delete_for_me(message, alice)

        assert message.deleted_for.count() == 1


class TestListMessages:
    def test_pages_newest_first_ordered_oldest_first_within_page(self, direct, alice):
        sent = [send_text(direct, alice, f"m{i}") for i in range(5)]

        first = MessageService.list_messages(direct, alice, page=1, limit=2).data
        last = MessageService.list_messages(direct, alice, page=3, limit=2).data

        assert [m.pk for m in first.messages] == [sent[3].pk, sent[4].pk]
        assert first.has_more
        assert [m.pk for m in last.messages] == [sent[0].pk]
        assert not last.has_more

    def test_limit_is_capped(self, direct, alice):
        page = MessageService.list_messages(direct, alice, limit=10_000).data

        assert page.limit == MESSAGE_CONFIG.MAX_PAGE_SIZE

    def test_outsider_cannot_list(self, direct, outsider):
        assert MessageService.list_messages(direct, outsider).error_code == "NOT_PARTICIPANT"


class TestMarkAsRead:
    def test_resets_unread_and_adds_receipts(self, group, alice, bob):
        first = send_text(group, alice)
        second = send_text(group, alice)

        result = MessageService.mark_as_read(group, bob)

        assert result.data == 2
        assert MessageService.unread_count(group, bob) == 0
        assert set(
            MessageReceipt.objects.filter(user=bob, kind=ReceiptKind.READ).values_list(
                "message_id", flat=True
            )
        ) == {first.pk, second.pk}

    def test_own_messages_are_not_receipted(self, direct, alice):
        send_text(direct, alice)

        assert MessageService.mark_as_read(direct, alice).data == 0

    def test_second_call_marks_nothing_new(self, direct, alice, bob):
        send_text(direct, alice)
        MessageService.mark_as_read(direct, bob)

        assert MessageService.mark_as_read(direct, bob).data == 0

    def test_outsider(self, direct, outsider):
        assert MessageService.mark_as_read(direct, outsider).error_code == "NOT_PARTICIPANT"


# =============================================================================
# ReceiptService / ReactionService
# =============================================================================


class TestRecordReceipt:
    def test_records_delivered_receipt_once(self, direct, alice, bob):
        message = send_text(direct, alice)

        first = ReceiptService.record_receipt(bob, direct.pk, message.pk, ReceiptKind.DELIVERED)
        second = ReceiptService.record_receipt(bob, direct.pk, message.pk, ReceiptKind.DELIVERED)

        assert first.success and second.success
        assert first.data.pk == second.data.pk

    def test_message_from_other_conversation(self, direct, group, alice, bob):
        foreign = send_text(group, alice)

        result = ReceiptService.record_receipt(bob, direct.pk, foreign.pk, ReceiptKind.READ)

        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_outsider(self, direct, alice, outsider):
        message = send_text(direct, alice)

        result = ReceiptService.record_receipt(outsider, direct.pk, message.pk, ReceiptKind.READ)

        assert result.error_code == "NOT_PARTICIPANT"

    def test_invalid_kind(self, direct, alice, bob):
        message = send_text(direct, alice)

        result = ReceiptService.record_receipt(bob, direct.pk, message.pk, "seen")

        assert result.error_code == "INVALID_RECEIPT"


class TestReactions:
    def test_second_reaction_replaces_first(self, direct, alice, bob):
        message = send_text(direct, alice)

        ReactionService.add_reaction(message, bob, "👍")
        result = ReactionService.add_reaction(message, bob, "❤️")

        assert [(r["user_id"], r["emoji"]) for r in result.data] == [(bob.pk, "❤️")]
        assert MessageReaction.objects.filter(message=message).count() == 1

    def test_reactions_from_several_users(self, group, alice, bob, carol):
        message = send_text(group, alice)

        ReactionService.add_reaction(message, bob, "👍")
        result = ReactionService.add_reaction(message, carol, "😂")

        assert [r["user_id"] for r in result.data] == [bob.pk, carol.pk]

    def test_remove_reaction(self, direct, alice, bob):
        message = send_text(direct, alice)
        ReactionService.add_reaction(message, bob, "👍")

        result = ReactionService.remove_reaction(message, bob)

        assert result.data == []

    def test_cannot_react_to_deleted_message(self, direct, alice, bob):
        message = send_text(direct, alice)
        MessageService.delete_for_everyone(message, alice)

        assert ReactionService.add_reaction(message, bob, "👍").error_code == "MESSAGE_DELETED"

    def test_outsider_cannot_react(self, direct, alice, outsider):
        message = send_text(direct, alice)

        assert ReactionService.add_reaction(message, outsider, "👍").error_code == "NOT_PARTICIPANT"

    @pytest.mark.parametrize("emoji", ["", "   ", "x" * 33])
    def test_invalid_emoji(self, direct, alice, bob, emoji):
        message = send_text(direct, alice)

        assert ReactionService.add_reaction(message, bob, emoji).error_code == "INVALID_EMOJI"


class TestHelloScenario:
    def test_direct_message_round_trip(self, db):
        alice = UserFactory(full_name="Alice")
        bob = UserFactory(full_name="Bob")

        conversation = ConversationService.create_direct(alice, bob.pk).data
        send_text(conversation, alice, "hello bob")

        page = MessageService.list_messages(conversation, bob).data
        assert [MessageService.read_content(m) for m in page.messages] == ["hello bob"]
        assert MessageService.unread_count(conversation, bob) == 1

        MessageService.mark_as_read(conversation, bob)
        assert MessageService.unread_count(conversation, bob) == 0
