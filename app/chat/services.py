"""
Chat service layer: conversation store and membership/permission engine.

This module contains all conversation state mutations:
- ConversationService: Direct/group creation, rename, avatar, permission
  policy, wallpaper, per-user hiding
- ParticipantService: Adding/removing members, leaving, admin promotion
  and the random admin handover
- MessageService: Sending, editing, deleting, history reads and read markers

Concurrency:
    Every mutation of a conversation runs in one transaction after locking
    the conversation row with select_for_update(), so concurrent mutations
    of the same conversation serialize. Two removals racing over the last
    admin therefore see each other's result and hand over at most once.

Delivery:
    Services never touch the channel layer. Successful mutations return
    outcome objects (ConversationChange, MessageSent, ReadReceipt) that the
    caller hands to chat.delivery.DeliveryRouter after the transaction has
    committed.

Error codes (core.services.ErrorCode):
    FORBIDDEN: Not a member, not a contact, or blocked by the permission policy
    NOT_FOUND: Conversation, message or user does not exist
    INVALID_ARGUMENT: Bad names/content, self-targeting, empty effective input
    CONFLICT: Promoting a user who is already an admin
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils import timezone

from authentication.services import ContactService
from chat.constants import GROUP_CONFIG, MESSAGE_CONFIG, WALLPAPER_DEFAULTS
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageType,
    Participant,
    ParticipantRole,
    ReadMarker,
    SystemMessageEvent,
)
from core.services import BaseService, ErrorCode, ServiceResult
from notifications.models import NotificationType
from notifications.services import NotificationService

if TYPE_CHECKING:
    from authentication.models import User
    from notifications.models import Notification


# =============================================================================
# Outcomes
# =============================================================================


@dataclass
class ConversationChange:
    """
    Result of a membership, permission or settings mutation.

    Attributes:
        conversation: The updated conversation
        actor_id: User who performed the change
        member_ids: Members after the change
        system_message: System message recording the change, if any
        added_user_ids: Users who joined as part of the change
        removed_user_ids: Users who left or were removed
        new_admin_id: Member promoted by an automatic admin handover
        notifications: Notifications created for individual users
    """

    conversation: Conversation
    actor_id: int | None = None
    member_ids: list = field(default_factory=list)
    system_message: Message | None = None
    added_user_ids: list = field(default_factory=list)
    removed_user_ids: list = field(default_factory=list)
    new_admin_id: int | None = None
    notifications: list[Notification] = field(default_factory=list)


@dataclass
class MessageSent:
    """A newly stored message and the member set at send time."""

    message: Message
    member_ids: list = field(default_factory=list)


@dataclass
class ReadReceipt:
    """A read-marker update and the member set it should be announced to."""

    conversation_id: int
    user_id: int
    message_id: int | None
    member_ids: list = field(default_factory=list)


# =============================================================================
# Shared helpers
# =============================================================================


def _lock_conversation(conversation_id) -> Conversation:
    """Re-read and lock a conversation row. Must run inside a transaction."""
    return Conversation.objects.select_for_update().get(pk=conversation_id)


def _require_participant(
    conversation: Conversation, user: User
) -> Participant | ServiceResult:
    """Active participation of user, or a FORBIDDEN failure."""
    participant = conversation.get_participant(user.id)
    if participant is None:
        return ServiceResult.failure(
            "You are not a member of this conversation",
            error_code=ErrorCode.FORBIDDEN,
        )
    return participant


def _validate_group_name(title) -> ServiceResult | None:
    title = (title or "").strip()
    if not GROUP_CONFIG.MIN_NAME_LENGTH <= len(title) <= GROUP_CONFIG.MAX_NAME_LENGTH:
        return ServiceResult.failure(
            f"Group name must be {GROUP_CONFIG.MIN_NAME_LENGTH}-"
            f"{GROUP_CONFIG.MAX_NAME_LENGTH} characters",
            error_code=ErrorCode.INVALID_ARGUMENT,
        )
    return None


def _format_names(users) -> str:
    return ", ".join(user.display_name for user in users)


def _check_policy(
    conversation: Conversation, participant: Participant, action: str
) -> ServiceResult | None:
    """Gate a group action on the conversation's permission policy."""
    if not conversation.is_group:
        return ServiceResult.failure(
            "This action is only available for group conversations",
            error_code=ErrorCode.INVALID_ARGUMENT,
        )
    if (
        conversation.policy_for(action) == GROUP_CONFIG.POLICY_ADMIN
        and not participant.is_admin
    ):
        return ServiceResult.failure(
            "Only admins can perform this action",
            error_code=ErrorCode.FORBIDDEN,
        )
    return None


def _create_system_message(
    conversation: Conversation,
    actor: User | None,
    event: str,
    content: str,
    data: dict | None = None,
) -> Message:
    """
    Store a system message and make it the conversation's latest message.

    The actor (if any) has already seen the change, so they start in read_by.
    """
    message = Message.objects.create(
        conversation=conversation,
        sender=None,
        message_type=MessageType.SYSTEM,
        content=content,
        system_event=event,
        system_data=data or {},
    )
    if actor is not None:
        message.read_by.add(actor)

    conversation.latest_message = message
    conversation.last_message_at = message.created_at
    conversation.save(update_fields=["latest_message", "last_message_at", "updated_at"])
    return message


# =============================================================================
# ConversationService
# =============================================================================


class ConversationService(BaseService):
    """
    Conversation lifecycle and settings.

    Usage:
        result = ConversationService.create_direct(alice, bob.id)
        result = ConversationService.create_group(alice, [bob.id, carol.id], "Weekend")
        result = ConversationService.rename(conversation, alice, "Weekend plans")
    """

    @classmethod
    def get_for_member(cls, conversation_id, user: User) -> ServiceResult[Conversation]:
        """
        Load a conversation the user is an active member of.

        Error codes:
            NOT_FOUND: No such conversation
            FORBIDDEN: User is not a member
        """
        conversation = Conversation.objects.filter(pk=conversation_id).first()
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found", error_code=ErrorCode.NOT_FOUND
            )
        if not conversation.is_member(user.id):
            return ServiceResult.failure(
                "You are not a member of this conversation",
                error_code=ErrorCode.FORBIDDEN,
            )
        return ServiceResult.success(conversation)

    @classmethod
    def create_direct(cls, requester: User, other_user_id) -> ServiceResult[Conversation]:
        """
        Access or create the direct conversation between two contacts.

        Idempotent: returns the existing conversation between the pair
        unless the requester has hidden it, in which case a fresh one
        is started.

        Error codes:
            INVALID_ARGUMENT: Chatting with yourself
            NOT_FOUND: Other user does not exist
            FORBIDDEN: Users are not confirmed mutual contacts
        """
        if requester.id == other_user_id:
            return ServiceResult.failure(
                "Cannot start a conversation with yourself",
                error_code=ErrorCode.INVALID_ARGUMENT,
            )

        users = ContactService.get_active_users([other_user_id])
        other = users.get(other_user_id)
        if other is None:
            return ServiceResult.failure("User not found", error_code=ErrorCode.NOT_FOUND)

        if not ContactService.are_contacts(requester, other.id):
            return ServiceResult.failure(
                "You can only chat with approved contacts",
                error_code=ErrorCode.FORBIDDEN,
            )

        user_lower_id, user_higher_id = sorted([requester.id, other.id])

        with cls.atomic():
            # Serialize concurrent access-or-create calls for the same pair
            list(
                get_user_model()
                .objects.select_for_update()
                .filter(id__in=[user_lower_id, user_higher_id])
                .order_by("id")
                .values_list("id", flat=True)
            )

            existing = (
                Conversation.objects.filter(
                    direct_pair__user_lower_id=user_lower_id,
                    direct_pair__user_higher_id=user_higher_id,
                )
                .exclude(hidden_for=requester)
                .order_by("-created_at", "-id")
                .first()
            )
            if existing is not None:
                return ServiceResult.success(existing)

            conversation = Conversation.objects.create(
                conversation_type=ConversationType.DIRECT,
                created_by=requester,
                avatar="",
            )
            DirectConversationPair.objects.create(
                conversation=conversation,
                user_lower_id=user_lower_id,
                user_higher_id=user_higher_id,
            )
            Participant.objects.bulk_create(
                [
                    Participant(conversation=conversation, user=requester),
                    Participant(conversation=conversation, user=other),
                ]
            )

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} "
            f"between users {requester.id} and {other.id}"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def create_group(
        cls,
        creator: User,
        member_ids: list,
        title: str,
        avatar: str | None = None,
    ) -> ServiceResult[ConversationChange]:
        """
        Create a group with the creator as sole admin.

        Error codes:
            INVALID_ARGUMENT: Bad name or fewer than two invited members
            NOT_FOUND: An invited id is not an active user
            FORBIDDEN: An invited user is not a contact of the creator
        """
        invalid = _validate_group_name(title)
        if invalid is not None:
            return invalid

        invited_ids = list(dict.fromkeys(uid for uid in member_ids if uid != creator.id))
        if len(invited_ids) < GROUP_CONFIG.MIN_INVITED_MEMBERS:
            return ServiceResult.failure(
                f"At least {GROUP_CONFIG.MIN_INVITED_MEMBERS} other users are required",
                error_code=ErrorCode.INVALID_ARGUMENT,
            )

        users = ContactService.get_active_users(invited_ids)
        if len(users) != len(invited_ids):
            return ServiceResult.failure(
                "One or more users do not exist", error_code=ErrorCode.NOT_FOUND
            )

        if ContactService.non_contacts(creator, invited_ids):
            return ServiceResult.failure(
                "All members must be your contacts to create a group",
                error_code=ErrorCode.FORBIDDEN,
            )

        invited = [users[uid] for uid in invited_ids]
        title = title.strip()

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                title=title,
                avatar=avatar or GROUP_CONFIG.DEFAULT_AVATAR,
                created_by=creator,
            )
            Participant.objects.create(
                conversation=conversation, user=creator, role=ParticipantRole.ADMIN
            )
            Participant.objects.bulk_create(
                [
                    Participant(
                        conversation=conversation, user=user, role=ParticipantRole.MEMBER
                    )
                    for user in invited
                ]
            )
            system_message = _create_system_message(
                conversation,
                creator,
                SystemMessageEvent.GROUP_CREATED,
                f"{creator.display_name} created the group",
                {"title": title},
            )
            notifications = [
                NotificationService.create_notification(
                    recipient=user,
                    notification_type=NotificationType.GROUP_ADDED,
                    actor=creator,
                    conversation=conversation,
                    message=f"{creator.display_name} added you to {title}",
                ).data
                for user in invited
            ]

        cls.get_logger().info(
            f"Created group conversation {conversation.id} by user {creator.id} "
            f"with {len(invited)} invited members"
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=creator.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
                added_user_ids=invited_ids,
                notifications=notifications,
            )
        )

    @classmethod
    def rename(
        cls, conversation: Conversation, requester: User, title: str
    ) -> ServiceResult[ConversationChange]:
        """Rename a group (gated by the "rename" policy)."""
        invalid = _validate_group_name(title)
        if invalid is not None:
            return invalid
        title = title.strip()

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant
            denied = _check_policy(
                conversation, participant, GROUP_CONFIG.ACTION_RENAME
            )
            if denied is not None:
                return denied

            old_title = conversation.title
            conversation.title = title
            conversation.save(update_fields=["title", "updated_at"])
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.GROUP_RENAMED,
                f'{requester.display_name} renamed the group to "{title}"',
                {"old_title": old_title, "new_title": title},
            )

        cls.get_logger().info(
            f"Conversation {conversation.id} renamed by user {requester.id}"
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
            )
        )

    @classmethod
    def change_avatar(
        cls, conversation: Conversation, requester: User, avatar: str
    ) -> ServiceResult[ConversationChange]:
        """Change a group's avatar (gated by the "groupAvatar" policy)."""
        if not avatar:
            return ServiceResult.failure(
                "Avatar is required", error_code=ErrorCode.INVALID_ARGUMENT
            )

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant
            denied = _check_policy(
                conversation, participant, GROUP_CONFIG.ACTION_GROUP_AVATAR
            )
            if denied is not None:
                return denied

            conversation.avatar = avatar
            conversation.save(update_fields=["avatar", "updated_at"])
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.AVATAR_CHANGED,
                f"{requester.display_name} changed the group avatar",
                {"avatar": avatar},
            )

        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
            )
        )

    @classmethod
    def update_permissions(
        cls, conversation: Conversation, requester: User, policy: dict
    ) -> ServiceResult[ConversationChange]:
        """
        Merge a partial permission policy into the group's policy.

        Only admins may change the policy.

        Error codes:
            INVALID_ARGUMENT: Empty policy, unknown action or value, not a group
            FORBIDDEN: Requester is not an admin
        """
        if not policy:
            return ServiceResult.failure(
                "No permissions provided", error_code=ErrorCode.INVALID_ARGUMENT
            )
        unknown = set(policy) - set(GROUP_CONFIG.ACTIONS)
        bad_values = {k: v for k, v in policy.items() if v not in GROUP_CONFIG.POLICY_VALUES}
        if unknown or bad_values:
            return ServiceResult.failure(
                "Invalid permission policy",
                error_code=ErrorCode.INVALID_ARGUMENT,
                errors={
                    **{action: ["Unknown action"] for action in sorted(unknown)},
                    **{
                        action: [f"Must be one of {', '.join(GROUP_CONFIG.POLICY_VALUES)}"]
                        for action in sorted(bad_values)
                        if action not in unknown
                    },
                },
            )

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant
            if not conversation.is_group:
                return ServiceResult.failure(
                    "Permissions only apply to group conversations",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )
            if not participant.is_admin:
                return ServiceResult.failure(
                    "Only admins can change group permissions",
                    error_code=ErrorCode.FORBIDDEN,
                )

            conversation.permissions = {**conversation.permissions, **policy}
            conversation.save(update_fields=["permissions", "updated_at"])
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.PERMISSIONS_CHANGED,
                f"{requester.display_name} changed the group permissions",
                {"permissions": conversation.permissions},
            )

        cls.get_logger().info(
            f"Conversation {conversation.id} permissions updated by user "
            f"{requester.id}: {policy}"
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
            )
        )

    @classmethod
    def change_wallpaper(
        cls, conversation: Conversation, requester: User, wallpaper: dict
    ) -> ServiceResult[ConversationChange]:
        """
        Merge a partial wallpaper theme into the conversation's wallpaper.

        Any member may change the wallpaper, in direct and group conversations.
        """
        if not wallpaper:
            return ServiceResult.failure(
                "No wallpaper settings provided", error_code=ErrorCode.INVALID_ARGUMENT
            )
        unknown = set(wallpaper) - set(WALLPAPER_DEFAULTS)
        if unknown:
            return ServiceResult.failure(
                f"Unknown wallpaper settings: {', '.join(sorted(unknown))}",
                error_code=ErrorCode.INVALID_ARGUMENT,
            )

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant

            conversation.wallpaper = {**WALLPAPER_DEFAULTS, **conversation.wallpaper, **wallpaper}
            conversation.save(update_fields=["wallpaper", "updated_at"])
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.WALLPAPER_CHANGED,
                f"{requester.display_name} changed the wallpaper",
                {"wallpaper": conversation.wallpaper},
            )

        cls.get_logger().info(
            f"Conversation {conversation.id} wallpaper changed by user {requester.id}"
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
            )
        )

    @classmethod
    def hide_for_user(
        cls, conversation: Conversation, user: User
    ) -> ServiceResult[Conversation]:
        """Remove a conversation from the user's list (history is kept)."""
        participant = _require_participant(conversation, user)
        if isinstance(participant, ServiceResult):
            return participant

        conversation.hidden_for.add(user)
        cls.get_logger().info(f"Conversation {conversation.id} hidden for user {user.id}")
        return ServiceResult.success(conversation)


# =============================================================================
# ParticipantService
# =============================================================================


class ParticipantService(BaseService):
    """
    Group membership and the admin state machine.

    Invariant: a group with at least one member has at least one admin.
    When a departure empties the admin set, a remaining member is chosen
    uniformly at random and promoted.
    """

    @classmethod
    def add_members(
        cls, conversation: Conversation, requester: User, user_ids: list
    ) -> ServiceResult[ConversationChange]:
        """
        Add contacts of the requester to a group (gated by "addMember").

        Ids that are already members are filtered out.

        Error codes:
            NOT_FOUND: An id is not an active user
            FORBIDDEN: A new id is not a contact of the requester
            INVALID_ARGUMENT: Nothing left to add after filtering
        """
        requested_ids = list(dict.fromkeys(user_ids))
        if not requested_ids:
            return ServiceResult.failure(
                "No users provided", error_code=ErrorCode.INVALID_ARGUMENT
            )

        users = ContactService.get_active_users(requested_ids)
        if len(users) != len(requested_ids):
            return ServiceResult.failure(
                "One or more users do not exist", error_code=ErrorCode.NOT_FOUND
            )

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant
            denied = _check_policy(
                conversation, participant, GROUP_CONFIG.ACTION_ADD_MEMBER
            )
            if denied is not None:
                return denied

            current_ids = set(conversation.member_ids())
            new_ids = [uid for uid in requested_ids if uid not in current_ids]
            if not new_ids:
                return ServiceResult.failure(
                    "All users are already members",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )
            if ContactService.non_contacts(requester, new_ids):
                return ServiceResult.failure(
                    "You can only add your contacts",
                    error_code=ErrorCode.FORBIDDEN,
                )

            added = [users[uid] for uid in new_ids]
            Participant.objects.bulk_create(
                [
                    Participant(
                        conversation=conversation, user=user, role=ParticipantRole.MEMBER
                    )
                    for user in added
                ]
            )
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.MEMBERS_ADDED,
                f"{requester.display_name} added {_format_names(added)}",
                {"user_ids": new_ids},
            )
            notifications = [
                NotificationService.create_notification(
                    recipient=user,
                    notification_type=NotificationType.GROUP_ADDED,
                    actor=requester,
                    conversation=conversation,
                    message=f"{requester.display_name} added you to {conversation.title}",
                ).data
                for user in added
            ]

        cls.get_logger().info(
            f"User {requester.id} added {new_ids} to conversation {conversation.id}"
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
                added_user_ids=new_ids,
                notifications=notifications,
            )
        )

    @classmethod
    def remove_members(
        cls, conversation: Conversation, requester: User, user_ids: list
    ) -> ServiceResult[ConversationChange]:
        """
        Remove members from a group (gated by "removeMember").

        Removed users drop out of both the member and admin sets. If that
        empties the admin set while members remain, a random remaining
        member becomes admin.

        Error codes:
            INVALID_ARGUMENT: None of the ids are members
        """
        target_ids = list(dict.fromkeys(user_ids))
        if not target_ids:
            return ServiceResult.failure(
                "No users provided", error_code=ErrorCode.INVALID_ARGUMENT
            )

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant
            denied = _check_policy(
                conversation, participant, GROUP_CONFIG.ACTION_REMOVE_MEMBER
            )
            if denied is not None:
                return denied

            removed = list(
                conversation.active_participants()
                .filter(user_id__in=target_ids)
                .select_related("user")
            )
            if not removed:
                return ServiceResult.failure(
                    "None of the users are members of this conversation",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )

            now = timezone.now()
            removed_ids = [p.user_id for p in removed]
            conversation.active_participants().filter(user_id__in=removed_ids).update(
                left_at=now, removed_by=requester, updated_at=now
            )
            new_admin = cls._ensure_admin(conversation)

            content = f"{requester.display_name} removed {_format_names(p.user for p in removed)}"
            if new_admin is not None:
                content += f". {new_admin.user.display_name} is now an admin"
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.MEMBERS_REMOVED,
                content,
                {
                    "user_ids": removed_ids,
                    "new_admin_id": new_admin.user_id if new_admin else None,
                },
            )

        cls.get_logger().info(
            f"User {requester.id} removed {removed_ids} from conversation "
            f"{conversation.id}"
            + (f", promoted {new_admin.user_id}" if new_admin else "")
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
                removed_user_ids=removed_ids,
                new_admin_id=new_admin.user_id if new_admin else None,
            )
        )

    @classmethod
    def leave(
        cls, conversation: Conversation, user: User
    ) -> ServiceResult[ConversationChange]:
        """
        Leave a group voluntarily.

        Uses the same random handover rule as removal when the last
        admin leaves.
        """
        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, user)
            if isinstance(participant, ServiceResult):
                return participant
            if not conversation.is_group:
                return ServiceResult.failure(
                    "Cannot leave a direct conversation",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )

            participant.left_at = timezone.now()
            participant.save(update_fields=["left_at", "updated_at"])
            new_admin = cls._ensure_admin(conversation)

            content = f"{user.display_name} left the group"
            if new_admin is not None:
                content += f". {new_admin.user.display_name} is now an admin"
            system_message = _create_system_message(
                conversation,
                None,
                SystemMessageEvent.MEMBER_LEFT,
                content,
                {
                    "user_id": user.id,
                    "new_admin_id": new_admin.user_id if new_admin else None,
                },
            )

        cls.get_logger().info(f"User {user.id} left conversation {conversation.id}")
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=user.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
                removed_user_ids=[user.id],
                new_admin_id=new_admin.user_id if new_admin else None,
            )
        )

    @classmethod
    def promote_admin(
        cls, conversation: Conversation, requester: User, target_id
    ) -> ServiceResult[ConversationChange]:
        """
        Make a member an admin.

        Error codes:
            FORBIDDEN: Requester is not an admin
            INVALID_ARGUMENT: Target is not a member
            CONFLICT: Target is already an admin
        """
        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, requester)
            if isinstance(participant, ServiceResult):
                return participant
            if not conversation.is_group:
                return ServiceResult.failure(
                    "Admins only exist in group conversations",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )
            if not participant.is_admin:
                return ServiceResult.failure(
                    "Only admins can promote members",
                    error_code=ErrorCode.FORBIDDEN,
                )

            target = (
                conversation.active_participants()
                .filter(user_id=target_id)
                .select_related("user")
                .first()
            )
            if target is None:
                return ServiceResult.failure(
                    "User is not a member of this conversation",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )
            if target.is_admin:
                return ServiceResult.failure(
                    "User is already an admin", error_code=ErrorCode.CONFLICT
                )

            target.role = ParticipantRole.ADMIN
            target.save(update_fields=["role", "updated_at"])
            system_message = _create_system_message(
                conversation,
                requester,
                SystemMessageEvent.ADMIN_PROMOTED,
                f"{requester.display_name} made {target.user.display_name} an admin",
                {"user_id": target.user_id},
            )

        cls.get_logger().info(
            f"User {requester.id} promoted {target_id} in conversation {conversation.id}"
        )
        return ServiceResult.success(
            ConversationChange(
                conversation=conversation,
                actor_id=requester.id,
                member_ids=conversation.member_ids(),
                system_message=system_message,
            )
        )

    @classmethod
    def _ensure_admin(cls, conversation: Conversation) -> Participant | None:
        """
        Promote a random member if the group has members but no admin.

        Must run inside the conversation lock.

        Returns:
            The promoted participation, or None if no handover was needed
        """
        remaining = list(conversation.active_participants().select_related("user"))
        if not remaining or any(p.is_admin for p in remaining):
            return None

        new_admin = random.choice(remaining)
        new_admin.role = ParticipantRole.ADMIN
        new_admin.save(update_fields=["role", "updated_at"])
        cls.get_logger().info(
            f"Conversation {conversation.id} had no admin left, "
            f"promoted user {new_admin.user_id}"
        )
        return new_admin


# =============================================================================
# MessageService
# =============================================================================


class MessageService(BaseService):
    """
    Message storage and read-state bookkeeping.

    Content is encrypted and decrypted by the model field; this service
    only ever sees plaintext.
    """

    @staticmethod
    def _validate_content(content) -> ServiceResult | None:
        content = (content or "").strip()
        if not MESSAGE_CONFIG.MIN_CONTENT_LENGTH <= len(content) <= MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content must be {MESSAGE_CONFIG.MIN_CONTENT_LENGTH}-"
                f"{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code=ErrorCode.INVALID_ARGUMENT,
            )
        return None

    @classmethod
    def send_message(
        cls,
        conversation: Conversation,
        sender: User,
        content: str,
        reply_to_id=None,
    ) -> ServiceResult[MessageSent]:
        """
        Store a message from a member and make it the latest message.

        The sender starts in read_by. Sending un-hides the conversation
        for every member who had hidden it.

        Error codes:
            FORBIDDEN: Sender is not a member
            INVALID_ARGUMENT: Bad content or reply target outside the conversation
        """
        invalid = cls._validate_content(content)
        if invalid is not None:
            return invalid

        with cls.atomic():
            conversation = _lock_conversation(conversation.pk)
            participant = _require_participant(conversation, sender)
            if isinstance(participant, ServiceResult):
                return participant

            reply_to = None
            if reply_to_id is not None:
                reply_to = Message.objects.filter(
                    pk=reply_to_id, conversation=conversation, is_deleted=False
                ).first()
                if reply_to is None:
                    return ServiceResult.failure(
                        "Reply target must be a message in this conversation",
                        error_code=ErrorCode.INVALID_ARGUMENT,
                    )

            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                message_type=MessageType.TEXT,
                content=content.strip(),
                reply_to=reply_to,
            )
            message.read_by.add(sender)

            conversation.latest_message = message
            conversation.last_message_at = message.created_at
            conversation.save(
                update_fields=["latest_message", "last_message_at", "updated_at"]
            )
            conversation.hidden_for.clear()

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} to conversation {conversation.id}"
        )
        return ServiceResult.success(
            MessageSent(message=message, member_ids=conversation.member_ids())
        )

    @classmethod
    def edit_message(
        cls, message: Message, user: User, content: str
    ) -> ServiceResult[Message]:
        """
        Change the content of one's own message.

        Error codes:
            FORBIDDEN: User is not the sender (system messages have none)
            NOT_FOUND: Message was deleted
        """
        if message.is_deleted:
            return ServiceResult.failure("Message not found", error_code=ErrorCode.NOT_FOUND)
        if message.sender_id != user.id:
            return ServiceResult.failure(
                "You can only edit your own messages", error_code=ErrorCode.FORBIDDEN
            )
        invalid = cls._validate_content(content)
        if invalid is not None:
            return invalid

        message.content = content.strip()
        message.edited_at = timezone.now()
        message.save(update_fields=["content", "edited_at", "updated_at"])
        cls.get_logger().info(f"User {user.id} edited message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    def delete_message(cls, message: Message, user: User) -> ServiceResult[Message]:
        """
        Soft delete one's own message.

        If it was the latest message, the latest pointer moves back to the
        newest remaining message.
        """
        if message.sender_id != user.id:
            return ServiceResult.failure(
                "You can only delete your own messages", error_code=ErrorCode.FORBIDDEN
            )
        if message.is_deleted:
            return ServiceResult.failure("Message not found", error_code=ErrorCode.NOT_FOUND)

        with cls.atomic():
            conversation = _lock_conversation(message.conversation_id)
            message.soft_delete()
            if conversation.latest_message_id == message.id:
                conversation.latest_message = (
                    conversation.messages.filter(is_deleted=False)
                    .order_by("-created_at", "-id")
                    .first()
                )
                conversation.save(update_fields=["latest_message", "updated_at"])

        cls.get_logger().info(f"User {user.id} deleted message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    def mark_read(
        cls, conversation: Conversation, user: User, message_id
    ) -> ServiceResult[ReadReceipt]:
        """
        Move the user's last-read marker and mark the conversation read.

        The marker is written with a single atomic upsert. The user is
        added to read_by of every message in the conversation.

        Error codes:
            FORBIDDEN: User is not a member
            NOT_FOUND: Message does not belong to the conversation
        """
        if not conversation.is_member(user.id):
            return ServiceResult.failure(
                "You are not a member of this conversation",
                error_code=ErrorCode.FORBIDDEN,
            )
        message = Message.objects.filter(pk=message_id, conversation=conversation).first()
        if message is None:
            return ServiceResult.failure("Message not found", error_code=ErrorCode.NOT_FOUND)

        with cls.atomic():
            ReadMarker.objects.bulk_create(
                [
                    ReadMarker(
                        conversation=conversation,
                        user=user,
                        message=message,
                        read_at=timezone.now(),
                    )
                ],
                update_conflicts=True,
                unique_fields=["conversation", "user"],
                update_fields=["message", "read_at"],
            )
            cls._add_reader(conversation, user)

        cls.get_logger().debug(
            f"User {user.id} read conversation {conversation.id} up to message {message.id}"
        )
        return ServiceResult.success(
            ReadReceipt(
                conversation_id=conversation.id,
                user_id=user.id,
                message_id=message.id,
                member_ids=conversation.member_ids(),
            )
        )

    @classmethod
    def get_history(
        cls, conversation: Conversation, user: User
    ) -> ServiceResult[tuple[list, ReadReceipt]]:
        """
        Full decrypted history of a conversation, oldest first.

        Opening a conversation marks every message in it as read by the
        user; the returned ReadReceipt drives the chat-read broadcast.
        """
        if not conversation.is_member(user.id):
            return ServiceResult.failure(
                "You are not a member of this conversation",
                error_code=ErrorCode.FORBIDDEN,
            )

        with cls.atomic():
            cls._add_reader(conversation, user)

        messages = list(
            conversation.messages.filter(is_deleted=False)
            .select_related("sender", "reply_to", "reply_to__sender")
            .prefetch_related("read_by")
            .order_by("created_at", "id")
        )
        receipt = ReadReceipt(
            conversation_id=conversation.id,
            user_id=user.id,
            message_id=None,
            member_ids=conversation.member_ids(),
        )
        return ServiceResult.success((messages, receipt))

    @staticmethod
    def _add_reader(conversation: Conversation, user: User) -> None:
        """Add user to read_by of every message in the conversation."""
        ReadBy = Message.read_by.through
        unread_ids = conversation.messages.filter(~Q(read_by=user)).values_list(
            "id", flat=True
        )
        ReadBy.objects.bulk_create(
            [ReadBy(message_id=message_id, user_id=user.id) for message_id in unread_ids],
            ignore_conflicts=True,
        )

    @staticmethod
    def get_read_markers(conversation: Conversation) -> dict:
        """Member id -> last-read message id."""
        return dict(
            conversation.read_markers.values_list("user_id", "message_id")
        )
