"""
Tests for the chat service layer.

Tests cover:
- ConversationService: direct access-or-create, group creation, rename,
  avatar, permission policy, wallpaper, hiding
- ParticipantService: add/remove members, leave, promote, admin handover
- MessageService: send, edit, delete, history, read markers

Every failure is checked by its error code, which is what both the REST
and WebSocket surfaces expose to clients.
"""

from unittest.mock import patch

import pytest

from authentication.tests.factories import UserFactory
from chat.constants import WALLPAPER_DEFAULTS, default_permissions
from chat.models import (
    Conversation,
    Message,
    MessageType,
    ParticipantRole,
    ReadMarker,
    SystemMessageEvent,
)
from chat.services import (
    ConversationService,
    MessageService,
    ParticipantService,
)
from core.services import ErrorCode
from notifications.models import Notification, NotificationType


def read_by_ids(message):
    return set(message.read_by.values_list("id", flat=True))


def latest_system_message(conversation):
    return conversation.messages.filter(message_type=MessageType.SYSTEM).latest("created_at", "id")


# =============================================================================
# ConversationService.create_direct
# =============================================================================


@pytest.mark.django_db
class TestCreateDirect:
    def test_creates_conversation_with_both_members(self, alice, bob):
        result = ConversationService.create_direct(alice, bob.id)

        assert result.success
        conversation = result.data
        assert not conversation.is_group
        assert set(conversation.member_ids()) == {alice.id, bob.id}
        assert conversation.admin_ids() == set()

    def test_second_call_returns_same_conversation(self, alice, bob):
        first = ConversationService.create_direct(alice, bob.id).data

        assert ConversationService.create_direct(alice, bob.id).data.id == first.id
        assert ConversationService.create_direct(bob, alice.id).data.id == first.id
        assert Conversation.objects.count() == 1

    def test_conversation_hidden_by_requester_is_not_reused(self, alice, bob):
        first = ConversationService.create_direct(alice, bob.id).data
        ConversationService.hide_for_user(first, alice)

        second = ConversationService.create_direct(alice, bob.id).data

        assert second.id != first.id
        # bob never hid the old conversation
        assert ConversationService.create_direct(bob, alice.id).data.id == second.id

    def test_non_contact_is_forbidden(self, alice, stranger):
        result = ConversationService.create_direct(alice, stranger.id)

        assert not result.success
        assert result.error_code == ErrorCode.FORBIDDEN
        assert Conversation.objects.count() == 0

    def test_self_chat_is_invalid(self, alice):
        result = ConversationService.create_direct(alice, alice.id)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_unknown_user_is_not_found(self, alice):
        result = ConversationService.create_direct(alice, 999999)

        assert result.error_code == ErrorCode.NOT_FOUND

    def test_inactive_user_is_not_found(self, alice):
        inactive = UserFactory(is_active=False, contacts=[alice])

        result = ConversationService.create_direct(alice, inactive.id)

        assert result.error_code == ErrorCode.NOT_FOUND


# =============================================================================
# ConversationService.create_group
# =============================================================================


@pytest.mark.django_db
class TestCreateGroup:
    def test_creator_is_sole_admin(self, alice, bob, carol):
        change = ConversationService.create_group(alice, [bob.id, carol.id], "Weekend").data
        conversation = change.conversation

        assert conversation.is_group
        assert conversation.title == "Weekend"
        assert conversation.member_ids() == [alice.id, bob.id, carol.id]
        assert conversation.admin_ids() == {alice.id}
        assert conversation.permissions == default_permissions()
        assert change.added_user_ids == [bob.id, carol.id]

    def test_default_policy_is_admin_for_every_action(self, group):
        assert set(group.permissions.values()) == {"admin"}

    def test_system_message_is_latest_and_read_by_creator(self, alice, group):
        message = group.latest_message

        assert message.is_system
        assert message.conversation_id == group.id
        assert message.system_event == SystemMessageEvent.GROUP_CREATED
        assert read_by_ids(message) == {alice.id}
        assert group.last_message_at == message.created_at

    def test_invited_members_are_notified(self, alice, bob, carol):
        change = ConversationService.create_group(alice, [bob.id, carol.id], "Weekend").data

        assert {n.recipient_id for n in change.notifications} == {bob.id, carol.id}
        assert Notification.objects.filter(
            notification_type=NotificationType.GROUP_ADDED, actor=alice
        ).count() == 2

    def test_creator_and_duplicates_in_member_ids_are_ignored(self, alice, bob, carol):
        change = ConversationService.create_group(
            alice, [alice.id, bob.id, bob.id, carol.id], "Weekend"
        ).data

        assert change.conversation.member_ids() == [alice.id, bob.id, carol.id]

    def test_non_contact_member_is_forbidden(self, alice, bob, stranger):
        result = ConversationService.create_group(alice, [bob.id, stranger.id], "Weekend")

        assert result.error_code == ErrorCode.FORBIDDEN
        assert Conversation.objects.count() == 0

    def test_unknown_member_is_not_found(self, alice, bob):
        result = ConversationService.create_group(alice, [bob.id, 999999], "Weekend")

        assert result.error_code == ErrorCode.NOT_FOUND

    def test_too_few_members_is_invalid(self, alice, bob):
        result = ConversationService.create_group(alice, [bob.id], "Weekend")

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    @pytest.mark.parametrize("title", ["", "ab", "x" * 31, "   "])
    def test_bad_name_is_invalid(self, alice, bob, carol, title):
        result = ConversationService.create_group(alice, [bob.id, carol.id], title)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_default_avatar(self, group):
        assert group.avatar == "/avatars/hugging.png"


# =============================================================================
# ConversationService settings
# =============================================================================


@pytest.mark.django_db
class TestRename:
    def test_admin_can_rename_under_admin_policy(self, alice, group):
        change = ConversationService.rename(group, alice, "Trip").data

        assert change.conversation.title == "Trip"
        assert change.system_message.system_data == {
            "old_title": "Weekend",
            "new_title": "Trip",
        }

    def test_member_cannot_rename_under_admin_policy(self, bob, group):
        result = ConversationService.rename(group, bob, "Trip")

        assert result.error_code == ErrorCode.FORBIDDEN
        group.refresh_from_db()
        assert group.title == "Weekend"

    def test_member_can_rename_under_all_policy(self, alice, bob, group):
        ConversationService.update_permissions(group, alice, {"rename": "all"})

        result = ConversationService.rename(group, bob, "Trip")

        assert result.success
        assert result.data.conversation.title == "Trip"

    def test_non_member_is_forbidden(self, stranger, group):
        result = ConversationService.rename(group, stranger, "Trip")

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_direct_conversation_cannot_be_renamed(self, alice, direct):
        result = ConversationService.rename(direct, alice, "Trip")

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        direct.refresh_from_db()
        assert direct.title != "Trip"

    @pytest.mark.parametrize("title", ["ab", "x" * 31, "   "])
    def test_name_outside_bounds_is_rejected_and_not_saved(self, alice, group, title):
        result = ConversationService.rename(group, alice, title)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        group.refresh_from_db()
        assert group.title == "Weekend"


@pytest.mark.django_db
class TestChangeAvatar:
    def test_admin_changes_avatar(self, alice, group):
        change = ConversationService.change_avatar(group, alice, "/avatars/cat.png").data

        assert change.conversation.avatar == "/avatars/cat.png"
        assert change.system_message.system_event == SystemMessageEvent.AVATAR_CHANGED

    def test_member_needs_all_policy(self, alice, bob, group):
        assert (
            ConversationService.change_avatar(group, bob, "/a.png").error_code
            == ErrorCode.FORBIDDEN
        )

        ConversationService.update_permissions(group, alice, {"groupAvatar": "all"})

        assert ConversationService.change_avatar(group, bob, "/a.png").success


@pytest.mark.django_db
class TestUpdatePermissions:
    def test_partial_policy_merges(self, alice, group):
        change = ConversationService.update_permissions(group, alice, {"addMember": "all"}).data

        assert change.conversation.permissions == {
            "rename": "admin",
            "addMember": "all",
            "removeMember": "admin",
            "groupAvatar": "admin",
        }

    def test_member_cannot_change_policy(self, bob, group):
        result = ConversationService.update_permissions(group, bob, {"rename": "all"})

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_unknown_action_is_invalid(self, alice, group):
        result = ConversationService.update_permissions(group, alice, {"delete": "all"})

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        assert "delete" in result.errors

    def test_bad_value_is_invalid(self, alice, group):
        result = ConversationService.update_permissions(group, alice, {"rename": "everyone"})

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_empty_policy_is_invalid(self, alice, group):
        result = ConversationService.update_permissions(group, alice, {})

        assert result.error_code == ErrorCode.INVALID_ARGUMENT


@pytest.mark.django_db
class TestChangeWallpaper:
    def test_any_member_can_change_wallpaper(self, bob, group):
        change = ConversationService.change_wallpaper(
            group, bob, {"senderBubble": "#000000"}
        ).data

        assert change.conversation.wallpaper == {
            **WALLPAPER_DEFAULTS,
            "senderBubble": "#000000",
        }
        assert change.system_message.system_event == SystemMessageEvent.WALLPAPER_CHANGED
        assert change.actor_id == bob.id

    def test_works_for_direct_conversations(self, alice, direct):
        result = ConversationService.change_wallpaper(direct, alice, {"url": "/bg.png"})

        assert result.success
        assert result.data.conversation.wallpaper["url"] == "/bg.png"

    def test_unknown_key_is_invalid(self, alice, group):
        result = ConversationService.change_wallpaper(group, alice, {"font": "serif"})

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_non_member_is_forbidden(self, stranger, group):
        result = ConversationService.change_wallpaper(group, stranger, {"url": "/bg.png"})

        assert result.error_code == ErrorCode.FORBIDDEN


@pytest.mark.django_db
class TestGetForMember:
    def test_member_gets_conversation(self, bob, group):
        assert ConversationService.get_for_member(group.id, bob).data == group

    def test_non_member_is_forbidden(self, stranger, group):
        result = ConversationService.get_for_member(group.id, stranger)

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_missing_conversation_is_not_found(self, alice):
        result = ConversationService.get_for_member(999999, alice)

        assert result.error_code == ErrorCode.NOT_FOUND


# =============================================================================
# ParticipantService
# =============================================================================


@pytest.mark.django_db
class TestAddMembers:
    def test_admin_adds_contact(self, alice, dave, group):
        change = ParticipantService.add_members(group, alice, [dave.id]).data

        assert dave.id in change.conversation.member_ids()
        assert change.added_user_ids == [dave.id]
        assert change.system_message.content == "alice added dave"
        assert [n.recipient_id for n in change.notifications] == [dave.id]

    def test_repeating_the_request_is_rejected_without_duplicates(self, alice, dave, group):
        ParticipantService.add_members(group, alice, [dave.id])
        members_after_first = group.member_ids()

        result = ParticipantService.add_members(group, alice, [dave.id])

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        assert group.member_ids() == members_after_first

    def test_existing_members_are_filtered_out(self, alice, bob, dave, group):
        change = ParticipantService.add_members(group, alice, [bob.id, dave.id]).data

        assert change.added_user_ids == [dave.id]

    def test_new_member_must_be_contact_of_requester(self, alice, stranger, group):
        result = ParticipantService.add_members(group, alice, [stranger.id])

        assert result.error_code == ErrorCode.FORBIDDEN
        assert stranger.id not in group.member_ids()

    def test_member_needs_all_policy(self, alice, carol, group):
        erin = UserFactory(username="erin", contacts=[carol])

        assert (
            ParticipantService.add_members(group, carol, [erin.id]).error_code
            == ErrorCode.FORBIDDEN
        )

        ConversationService.update_permissions(group, alice, {"addMember": "all"})

        assert ParticipantService.add_members(group, carol, [erin.id]).success

    def test_unknown_user_is_not_found(self, alice, group):
        result = ParticipantService.add_members(group, alice, [999999])

        assert result.error_code == ErrorCode.NOT_FOUND

    def test_direct_conversation_cannot_gain_members(self, alice, carol, direct):
        result = ParticipantService.add_members(direct, alice, [carol.id])

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        assert carol.id not in direct.member_ids()

    def test_former_member_can_be_added_again(self, alice, bob, group):
        ParticipantService.remove_members(group, alice, [bob.id])

        result = ParticipantService.add_members(group, alice, [bob.id])

        assert result.success
        assert bob.id in group.member_ids()


@pytest.mark.django_db
class TestRemoveMembers:
    def test_admin_removes_member(self, alice, bob, group):
        change = ParticipantService.remove_members(group, alice, [bob.id]).data

        assert bob.id not in change.conversation.member_ids()
        assert change.removed_user_ids == [bob.id]
        assert change.new_admin_id is None
        assert change.system_message.content == "alice removed bob"

    def test_removed_participation_records_remover(self, alice, bob, group):
        ParticipantService.remove_members(group, alice, [bob.id])

        participation = group.participants.get(user=bob)
        assert participation.left_at is not None
        assert participation.removed_by == alice

    def test_removing_last_admin_hands_over_to_remaining_member(self, alice, bob, carol, group):
        change = ParticipantService.remove_members(group, alice, [alice.id]).data

        admins = change.conversation.admin_ids()
        assert len(admins) == 1
        assert admins <= {bob.id, carol.id}
        assert change.new_admin_id in {bob.id, carol.id}
        assert change.system_message.system_data["user_ids"] == [alice.id]
        assert change.system_message.system_data["new_admin_id"] == change.new_admin_id

    def test_handover_picks_randomly(self, alice, carol, group):
        with patch("chat.services.random.choice", side_effect=lambda seq: seq[-1]) as choice:
            change = ParticipantService.remove_members(group, alice, [alice.id]).data

        choice.assert_called_once()
        assert change.new_admin_id == carol.id
        assert "carol is now an admin" in change.system_message.content

    def test_no_handover_while_another_admin_remains(self, alice, bob, group):
        ParticipantService.promote_admin(group, alice, bob.id)

        change = ParticipantService.remove_members(group, bob, [alice.id]).data

        assert change.new_admin_id is None
        assert change.conversation.admin_ids() == {bob.id}

    def test_admin_set_never_empty_while_members_remain(self, alice, bob, carol, dave, group):
        ParticipantService.add_members(group, alice, [dave.id])
        ConversationService.update_permissions(group, alice, {"removeMember": "all"})

        for requester, target in [(bob, alice), (carol, bob), (dave, carol)]:
            result = ParticipantService.remove_members(group, requester, [target.id])
            assert result.success
            assert result.data.conversation.admin_ids()

        assert group.member_ids() == [dave.id]
        assert group.admin_ids() == {dave.id}

    def test_member_needs_all_policy(self, bob, carol, group):
        result = ParticipantService.remove_members(group, bob, [carol.id])

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_member_cannot_remove_the_admin(self, alice, bob, carol, group):
        result = ParticipantService.remove_members(group, bob, [alice.id])

        assert result.error_code == ErrorCode.FORBIDDEN
        assert group.admin_ids() == {alice.id}
        assert set(group.member_ids()) == {alice.id, bob.id, carol.id}

    def test_direct_conversation_members_cannot_be_removed(self, alice, bob, direct):
        result = ParticipantService.remove_members(direct, alice, [bob.id])

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        assert set(direct.member_ids()) == {alice.id, bob.id}
        assert direct.admin_ids() == set()

    def test_non_members_are_invalid(self, alice, stranger, group):
        result = ParticipantService.remove_members(group, alice, [stranger.id])

        assert result.error_code == ErrorCode.INVALID_ARGUMENT


@pytest.mark.django_db
class TestLeave:
    def test_member_leaves(self, bob, group):
        change = ParticipantService.leave(group, bob).data

        assert bob.id not in change.conversation.member_ids()
        assert change.removed_user_ids == [bob.id]
        assert change.system_message.system_event == SystemMessageEvent.MEMBER_LEFT
        assert group.participants.get(user=bob).removed_by is None

    def test_last_admin_leaving_hands_over(self, alice, bob, carol, group):
        with patch("chat.services.random.choice", side_effect=lambda seq: seq[0]):
            change = ParticipantService.leave(group, alice).data

        assert change.new_admin_id == bob.id
        assert group.admin_ids() == {bob.id}

    def test_last_member_leaving_leaves_empty_group(self, alice, bob, carol, group):
        ParticipantService.leave(group, bob)
        ParticipantService.leave(group, carol)

        change = ParticipantService.leave(group, alice).data

        assert change.new_admin_id is None
        assert group.member_ids() == []
        assert group.admin_ids() == set()

    def test_cannot_leave_direct_conversation(self, alice, direct):
        result = ParticipantService.leave(direct, alice)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_non_member_cannot_leave(self, stranger, group):
        assert ParticipantService.leave(group, stranger).error_code == ErrorCode.FORBIDDEN


@pytest.mark.django_db
class TestPromoteAdmin:
    def test_admin_promotes_member(self, alice, bob, group):
        change = ParticipantService.promote_admin(group, alice, bob.id).data

        assert change.conversation.admin_ids() == {alice.id, bob.id}
        assert group.get_participant(bob.id).role == ParticipantRole.ADMIN
        assert change.system_message.system_data == {"user_id": bob.id}

    def test_member_cannot_promote(self, bob, carol, group):
        result = ParticipantService.promote_admin(group, bob, carol.id)

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_target_must_be_member(self, alice, stranger, group):
        result = ParticipantService.promote_admin(group, alice, stranger.id)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_already_admin_is_conflict(self, alice, group):
        result = ParticipantService.promote_admin(group, alice, alice.id)

        assert result.error_code == ErrorCode.CONFLICT


# =============================================================================
# MessageService
# =============================================================================


@pytest.mark.django_db
class TestSendMessage:
    def test_sender_is_in_read_by(self, alice, bob, direct):
        outcome = MessageService.send_message(direct, alice, "hello").data

        assert outcome.message.content == "hello"
        assert outcome.message.sender == alice
        assert read_by_ids(outcome.message) == {alice.id}
        assert set(outcome.member_ids) == {alice.id, bob.id}

    def test_updates_latest_message(self, alice, direct):
        outcome = MessageService.send_message(direct, alice, "hello").data

        direct.refresh_from_db()
        assert direct.latest_message_id == outcome.message.id
        assert direct.last_message_at == outcome.message.created_at

    def test_content_is_trimmed(self, alice, direct):
        outcome = MessageService.send_message(direct, alice, "  hi  ").data

        assert outcome.message.content == "hi"

    @pytest.mark.parametrize("content", ["", "   ", "x" * 501])
    def test_bad_content_is_invalid(self, alice, direct, content):
        result = MessageService.send_message(direct, alice, content)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_max_length_content_is_accepted(self, alice, direct):
        assert MessageService.send_message(direct, alice, "x" * 500).success

    def test_non_member_is_forbidden(self, stranger, direct):
        result = MessageService.send_message(direct, stranger, "hello")

        assert result.error_code == ErrorCode.FORBIDDEN
        assert not Message.objects.filter(sender=stranger).exists()

    def test_reply_to_message_in_same_conversation(self, alice, bob, direct):
        original = MessageService.send_message(direct, alice, "question").data.message

        reply = MessageService.send_message(direct, bob, "answer", reply_to_id=original.id).data

        assert reply.message.reply_to == original

    def test_reply_to_message_elsewhere_is_invalid(self, alice, direct, group):
        elsewhere = MessageService.send_message(group, alice, "other").data.message

        result = MessageService.send_message(direct, alice, "answer", reply_to_id=elsewhere.id)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT

    def test_sending_unhides_conversation(self, alice, bob, direct):
        ConversationService.hide_for_user(direct, bob)

        MessageService.send_message(direct, alice, "hello")

        assert not direct.hidden_for.filter(id=bob.id).exists()


@pytest.mark.django_db
class TestEditAndDelete:
    def test_sender_edits_message(self, alice, direct):
        message = MessageService.send_message(direct, alice, "helo").data.message

        edited = MessageService.edit_message(message, alice, "hello").data

        edited.refresh_from_db()
        assert edited.content == "hello"
        assert edited.edited_at is not None

    def test_other_member_cannot_edit(self, alice, bob, direct):
        message = MessageService.send_message(direct, alice, "hello").data.message

        result = MessageService.edit_message(message, bob, "hacked")

        assert result.error_code == ErrorCode.FORBIDDEN

    @pytest.mark.parametrize("content", ["", "   ", "x" * 501])
    def test_edit_with_bad_content_is_rejected(self, alice, direct, content):
        message = MessageService.send_message(direct, alice, "hello").data.message

        result = MessageService.edit_message(message, alice, content)

        assert result.error_code == ErrorCode.INVALID_ARGUMENT
        message.refresh_from_db()
        assert message.content == "hello"
        assert message.edited_at is None

    def test_system_message_cannot_be_edited(self, alice, group):
        result = MessageService.edit_message(group.latest_message, alice, "hacked")

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_delete_moves_latest_pointer_back(self, alice, direct):
        first = MessageService.send_message(direct, alice, "first").data.message
        second = MessageService.send_message(direct, alice, "second").data.message

        MessageService.delete_message(second, alice)

        direct.refresh_from_db()
        second.refresh_from_db()
        assert second.is_deleted
        assert direct.latest_message_id == first.id

    def test_deleted_message_cannot_be_edited(self, alice, direct):
        message = MessageService.send_message(direct, alice, "hello").data.message
        MessageService.delete_message(message, alice)

        result = MessageService.edit_message(message, alice, "again")

        assert result.error_code == ErrorCode.NOT_FOUND

    def test_other_member_cannot_delete(self, alice, bob, direct):
        message = MessageService.send_message(direct, alice, "hello").data.message

        assert MessageService.delete_message(message, bob).error_code == ErrorCode.FORBIDDEN


@pytest.mark.django_db
class TestReadState:
    def test_mark_read_adds_reader_to_every_message(self, alice, bob, direct):
        messages = [
            MessageService.send_message(direct, alice, text).data.message
            for text in ("one", "two")
        ]

        receipt = MessageService.mark_read(direct, bob, messages[-1].id).data

        assert receipt.message_id == messages[-1].id
        assert receipt.user_id == bob.id
        for message in messages:
            assert read_by_ids(message) == {alice.id, bob.id}

    def test_mark_read_upserts_single_marker(self, alice, bob, direct):
        first = MessageService.send_message(direct, alice, "one").data.message
        second = MessageService.send_message(direct, alice, "two").data.message

        MessageService.mark_read(direct, bob, first.id)
        MessageService.mark_read(direct, bob, second.id)

        marker = ReadMarker.objects.get(conversation=direct, user=bob)
        assert marker.message_id == second.id
        assert MessageService.get_read_markers(direct) == {bob.id: second.id}

    def test_mark_read_of_foreign_message_is_not_found(self, alice, bob, direct, group):
        elsewhere = MessageService.send_message(group, alice, "other").data.message

        result = MessageService.mark_read(direct, bob, elsewhere.id)

        assert result.error_code == ErrorCode.NOT_FOUND

    def test_non_member_cannot_mark_read(self, alice, stranger, direct):
        message = MessageService.send_message(direct, alice, "hi").data.message

        result = MessageService.mark_read(direct, stranger, message.id)

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_history_is_oldest_first_and_marks_read(self, alice, bob, direct):
        MessageService.send_message(direct, alice, "one")
        MessageService.send_message(direct, alice, "two")

        messages, receipt = MessageService.get_history(direct, bob).data

        assert [m.content for m in messages] == ["one", "two"]
        assert receipt.message_id is None
        assert all(bob.id in read_by_ids(m) for m in messages)

    def test_history_excludes_deleted_messages(self, alice, direct):
        kept = MessageService.send_message(direct, alice, "kept").data.message
        gone = MessageService.send_message(direct, alice, "gone").data.message
        MessageService.delete_message(gone, alice)

        messages, _ = MessageService.get_history(direct, alice).data

        assert messages == [kept]

    def test_history_includes_system_messages(self, bob, group):
        messages, _ = MessageService.get_history(group, bob).data

        assert messages[0].system_event == SystemMessageEvent.GROUP_CREATED

    def test_non_member_cannot_read_history(self, stranger, group):
        result = MessageService.get_history(group, stranger)

        assert result.error_code == ErrorCode.FORBIDDEN


@pytest.mark.django_db
class TestSystemMessages:
    def test_every_mutation_attaches_conversation(self, alice, bob, dave, group):
        ConversationService.rename(group, alice, "Trip")
        ParticipantService.add_members(group, alice, [dave.id])
        ParticipantService.promote_admin(group, alice, bob.id)
        ConversationService.change_wallpaper(group, alice, {"url": "/bg.png"})

        events = list(
            Message.objects.filter(message_type=MessageType.SYSTEM).values_list(
                "conversation_id", "system_event"
            )
        )
        assert {conversation_id for conversation_id, _ in events} == {group.id}
        assert latest_system_message(group).system_event == SystemMessageEvent.WALLPAPER_CHANGED
