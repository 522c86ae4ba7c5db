"""
Chat system models.

This module defines the data models for the conversation state engine:
- Direct (1:1) conversations between two confirmed mutual contacts
- Group conversations with an admin set and a per-action permission policy

Models:
    Conversation: Container for messages, wallpaper and permission policy
    DirectConversationPair: Lookup helper for the direct conversation of a user pair
    Participant: User participation in a conversation (join order, role, departure)
    Message: Individual message, content encrypted at rest
    ReadMarker: Last-read message per member

Design Decisions:
    - Membership is the set of active Participant rows (left_at IS NULL).
      Leaving closes the row; rejoining creates a new one.
    - Admins are participants with role=ADMIN. Direct participants have no role.
    - Conversations are never hard-deleted. A user "deleting" a conversation
      is recorded in hidden_for; history persists for everyone else.
    - Message content goes through EncryptedTextField, so the ORM only
      ever hands plaintext to application code.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from chat.constants import GROUP_CONFIG, default_permissions, default_wallpaper
from chat.fields import EncryptedTextField
from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, no admins, no permission policy
    GROUP: Creator plus invited members, admin set, permission policy
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class ParticipantRole(models.TextChoices):
    """
    Role within a group conversation.

    ADMIN: May always rename, add/remove members, change the avatar,
        promote members and change the permission policy
    MEMBER: May do whatever the permission policy opens to "all"

    Note: Direct conversations do not use roles (role is NULL for direct participants)
    """

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class MessageType(models.TextChoices):
    """
    Type of message.

    TEXT: Written by a member
    SYSTEM: Generated by the server for membership, permission and wallpaper changes
    """

    TEXT = "text", "Text"
    SYSTEM = "system", "System"


class SystemMessageEvent:
    """
    System message event types.

    The human-readable text lives in Message.content; the event type is
    stored in Message.system_event and structured details in
    Message.system_data.

    Events:
        GROUP_CREATED: data {"title": str}
        GROUP_RENAMED: data {"old_title": str, "new_title": str}
        AVATAR_CHANGED: data {"avatar": str}
        MEMBERS_ADDED: data {"user_ids": [id]}
        MEMBERS_REMOVED: data {"user_ids": [id], "new_admin_id": id|None}
        MEMBER_LEFT: data {"user_id": id, "new_admin_id": id|None}
        ADMIN_PROMOTED: data {"user_id": id}
        PERMISSIONS_CHANGED: data {"permissions": dict}
        WALLPAPER_CHANGED: data {"wallpaper": dict}
    """

    GROUP_CREATED = "group_created"
    GROUP_RENAMED = "group_renamed"
    AVATAR_CHANGED = "avatar_changed"
    MEMBERS_ADDED = "members_added"
    MEMBERS_REMOVED = "members_removed"
    MEMBER_LEFT = "member_left"
    ADMIN_PROMOTED = "admin_promoted"
    PERMISSIONS_CHANGED = "permissions_changed"
    WALLPAPER_CHANGED = "wallpaper_changed"


class Conversation(BaseModel):
    """
    A direct or group conversation.

    Fields:
        conversation_type: DIRECT or GROUP
        title: Group display name (blank for direct)
        avatar: Group avatar URL
        created_by: User who created the conversation
        permissions: Per-action policy {"rename", "addMember", "removeMember",
            "groupAvatar"} -> "admin" | "all"
        wallpaper: Theme {"url", "senderBubble", "receiverBubble",
            "senderTextColor", "receiverTextColor", "systemTextColor", "iconColor"}
        latest_message: Most recent message (same conversation) or NULL
        last_message_at: Ordering timestamp, bumped on every send
        hidden_for: Users who soft-deleted the conversation from their list
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )
    title = models.CharField(
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
        blank=True,
        default="",
        help_text="Display name for group conversations",
    )
    avatar = models.CharField(
        max_length=500,
        blank=True,
        default=GROUP_CONFIG.DEFAULT_AVATAR,
        help_text="Avatar URL for group conversations",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )
    permissions = models.JSONField(
        default=default_permissions,
        help_text="Who may perform each group action (admin or all)",
    )
    wallpaper = models.JSONField(
        default=default_wallpaper,
        help_text="Wallpaper URL and bubble color theme",
    )
    latest_message = models.ForeignKey(
        "chat.Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recent message in this conversation",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of the most recent message",
    )
    hidden_for = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_conversations",
        help_text="Users who removed this conversation from their list",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["-last_message_at"],
                name="chat_conv_last_msg_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.conversation_type == ConversationType.GROUP:
            return f"Group: {self.title}"
        return f"Direct: {self.pk}"

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP

    def active_participants(self):
        """Active participations in join order."""
        return self.participants.filter(left_at__isnull=True).order_by(
            "joined_at", "id"
        )

    def member_ids(self) -> list:
        """Ids of current members in join order."""
        return list(self.active_participants().values_list("user_id", flat=True))

    def admin_ids(self) -> set:
        return set(
            self.active_participants()
            .filter(role=ParticipantRole.ADMIN)
            .values_list("user_id", flat=True)
        )

    def get_participant(self, user_id):
        """Active participation of user_id or None."""
        return self.active_participants().filter(user_id=user_id).first()

    def is_member(self, user_id) -> bool:
        return self.active_participants().filter(user_id=user_id).exists()

    def policy_for(self, action: str) -> str:
        """Current policy for an action, falling back to admin-only."""
        return (self.permissions or {}).get(action, GROUP_CONFIG.POLICY_ADMIN)


class DirectConversationPair(models.Model):
    """
    Lookup row mapping a user pair to a direct conversation.

    Users are stored in canonical order (lower id first). A pair may own
    more than one conversation: when one user has hidden the previous
    conversation, accessing the chat again starts a fresh one for them.

    Constraints:
        - CheckConstraint(user_lower_id < user_higher_id): canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        related_name="direct_pair",
    )
    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]
        indexes = [
            models.Index(
                fields=["user_lower", "user_higher"],
                name="chat_direct_pair_users_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"


class Participant(BaseModel):
    """
    A user's participation in a conversation.

    Fields:
        conversation: The conversation
        user: The participating user
        role: ADMIN or MEMBER for groups, NULL for direct
        joined_at: When the user joined (defines member order)
        left_at: When the participation ended (NULL while active)
        removed_by: Who removed the user (NULL if they left voluntarily)

    Constraints:
        - UniqueConstraint(conversation, user) WHERE left_at IS NULL:
          a member appears at most once in the member set
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
    )
    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        null=True,
        blank=True,
        help_text="Role in group conversations (NULL for direct)",
    )
    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined this conversation",
    )
    left_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user left or was removed (NULL if active)",
    )
    removed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="removed_participants",
        help_text="User who removed this participant (NULL if left voluntarily)",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at"]
        indexes = [
            models.Index(
                fields=["conversation", "left_at"],
                name="chat_part_conv_active_idx",
            ),
            models.Index(
                fields=["user", "left_at"],
                name="chat_part_user_active_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                condition=Q(left_at__isnull=True),
                name="unique_active_participation",
            ),
        ]

    def __str__(self) -> str:
        status = "active" if self.is_active else "left"
        role_str = f" ({self.role})" if self.role else ""
        return f"Participant: {self.user_id} in {self.conversation_id}{role_str} [{status}]"

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN


class Message(SoftDeleteMixin, BaseModel):
    """
    A message in a conversation.

    Fields:
        conversation: Owning conversation (always set, system messages included)
        sender: Author (NULL for system messages)
        message_type: TEXT or SYSTEM
        content: Message body, encrypted at rest
        system_event: SystemMessageEvent value for system messages
        system_data: Structured details for system messages
        reply_to: Message being replied to (same conversation)
        read_by: Users who have read this message (sender included)
        edited_at: When the sender last edited the content
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="Message author (NULL for system messages)",
    )
    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
    )
    content = EncryptedTextField(
        help_text="Message body, stored as iv:ciphertext",
    )
    system_event = models.CharField(
        max_length=30,
        blank=True,
        default="",
        help_text="Event type for system messages",
    )
    system_data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Structured event details for system messages",
    )
    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to",
    )
    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="read_messages",
        help_text="Users who have read this message",
    )
    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when message was last edited",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at"],
                name="chat_msg_conv_created_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.message_type == MessageType.SYSTEM:
            return f"System message in {self.conversation_id}: {self.system_event}"
        return f"Message {self.pk} from {self.sender_id} in {self.conversation_id}"

    @property
    def is_system(self) -> bool:
        return self.message_type == MessageType.SYSTEM


class ReadMarker(models.Model):
    """
    Last-read message of a member in a conversation.

    Written with a single upsert keyed on (conversation, user), so
    concurrent mark-read calls from several devices never lose an update.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="read_markers",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="read_markers",
    )
    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="+",
    )
    read_at = models.DateTimeField(
        help_text="When the marker was last moved",
    )

    class Meta:
        db_table = "chat_read_marker"
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_read_marker",
            ),
        ]

    def __str__(self) -> str:
        return f"ReadMarker({self.user_id} in {self.conversation_id} -> {self.message_id})"
