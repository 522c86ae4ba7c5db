"""
Serializers for the chat API.

This module provides serializers for the chat system:
- Message serializers (read, create, edit, mark-read)
- Conversation serializers (detail, create direct/group, settings updates)
- Member list serializers (add/remove/promote)

Serializer Hierarchy:
    MessageSerializer: Full message with sender and one level of reply
    ReplyPreviewSerializer: Minimal message used inside replies
    MessageCreateSerializer: Send new message
    MessageEditSerializer: Edit own message
    MarkReadSerializer: Move the read marker

    ConversationSerializer: Full details including members, admins,
        permission policy, wallpaper and read markers
    DirectConversationCreateSerializer / GroupConversationCreateSerializer
    RenameSerializer, AvatarSerializer, MemberIdsSerializer,
    PromoteAdminSerializer, PermissionsSerializer, WallpaperSerializer

Design Decisions:
    - Read and write serializers are separate
    - Message content reaches serializers already decrypted (model field)
    - The same MessageSerializer output is used in REST responses and in
      WebSocket newMessage events
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from chat.constants import GROUP_CONFIG, MESSAGE_CONFIG, WALLPAPER_DEFAULTS
from chat.models import Conversation, Message
from chat.services import MessageService


# =============================================================================
# Message Serializers
# =============================================================================


class ReplyPreviewSerializer(serializers.ModelSerializer):
    """The message being replied to, without its own reply chain."""

    sender = UserSummarySerializer(read_only=True, allow_null=True)
    content = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["id", "sender", "content", "created_at"]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        if obj.is_deleted:
            return "[Message deleted]"
        return obj.content


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer.

    Includes sender details, the replied-to message (one level) and the
    ids of members who have read the message.
    """

    conversation_id = serializers.IntegerField(read_only=True)
    sender = UserSummarySerializer(read_only=True, allow_null=True)
    is_system = serializers.BooleanField(read_only=True)
    reply_to = ReplyPreviewSerializer(read_only=True, allow_null=True)
    read_by = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "content",
            "message_type",
            "is_system",
            "system_event",
            "system_data",
            "reply_to",
            "read_by",
            "edited_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_read_by(self, obj: Message) -> list[int]:
        return sorted(user.id for user in obj.read_by.all())


class MessageCreateSerializer(serializers.Serializer):
    """Serializer for sending messages."""

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        help_text=f"Message content (max {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters)",
    )
    reply_to = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Id of the message being replied to (optional)",
    )


class MessageEditSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH)


class MarkReadSerializer(serializers.Serializer):
    message_id = serializers.IntegerField(help_text="Last message the user has read")


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationSerializer(serializers.ModelSerializer):
    """
    Full conversation view.

    Members are listed in join order; admins and read markers are keyed by
    user id.
    """

    members = serializers.SerializerMethodField()
    admin_ids = serializers.SerializerMethodField()
    latest_message = MessageSerializer(read_only=True, allow_null=True)
    read_markers = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "title",
            "avatar",
            "members",
            "admin_ids",
            "permissions",
            "wallpaper",
            "latest_message",
            "last_message_at",
            "read_markers",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_members(self, obj: Conversation) -> list[dict]:
        participants = obj.active_participants().select_related("user")
        return [
            {
                **UserSummarySerializer(participant.user).data,
                "role": participant.role,
                "joined_at": serializers.DateTimeField().to_representation(
                    participant.joined_at
                ),
            }
            for participant in participants
        ]

    def get_admin_ids(self, obj: Conversation) -> list[int]:
        if not obj.is_group:
            return []
        return sorted(obj.admin_ids())

    def get_read_markers(self, obj: Conversation) -> dict:
        return {
            str(user_id): message_id
            for user_id, message_id in MessageService.get_read_markers(obj).items()
        }


class DirectConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(help_text="The contact to chat with")


class GroupConversationCreateSerializer(serializers.Serializer):
    """Group creation: name plus at least two invited contacts."""

    title = serializers.CharField(
        min_length=GROUP_CONFIG.MIN_NAME_LENGTH,
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
        help_text="Group name (3-30 characters)",
    )
    user_ids = serializers.ListField(
        child=serializers.IntegerField(),
        min_length=GROUP_CONFIG.MIN_INVITED_MEMBERS,
        help_text="Contacts to invite (at least 2)",
    )
    avatar = serializers.CharField(max_length=500, required=False, allow_blank=True)


class RenameSerializer(serializers.Serializer):
    title = serializers.CharField(
        min_length=GROUP_CONFIG.MIN_NAME_LENGTH,
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
    )


class AvatarSerializer(serializers.Serializer):
    avatar = serializers.CharField(max_length=500)


class MemberIdsSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), min_length=1)


class PromoteAdminSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class PermissionsSerializer(serializers.Serializer):
    """Partial permission policy; omitted actions keep their current value."""

    rename = serializers.ChoiceField(choices=GROUP_CONFIG.POLICY_VALUES, required=False)
    addMember = serializers.ChoiceField(choices=GROUP_CONFIG.POLICY_VALUES, required=False)
    removeMember = serializers.ChoiceField(
        choices=GROUP_CONFIG.POLICY_VALUES, required=False
    )
    groupAvatar = serializers.ChoiceField(
        choices=GROUP_CONFIG.POLICY_VALUES, required=False
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one permission to change.")
        return attrs


class WallpaperSerializer(serializers.Serializer):
    """Partial wallpaper theme; omitted keys keep their current value."""

    url = serializers.CharField(max_length=500, required=False)
    senderBubble = serializers.CharField(max_length=50, required=False)
    receiverBubble = serializers.CharField(max_length=50, required=False)
    senderTextColor = serializers.CharField(max_length=50, required=False)
    receiverTextColor = serializers.CharField(max_length=50, required=False)
    systemTextColor = serializers.CharField(max_length=50, required=False)
    iconColor = serializers.CharField(max_length=50, required=False)

    def validate(self, attrs):
        unknown = set(self.initial_data) - set(WALLPAPER_DEFAULTS)
        if unknown:
            raise serializers.ValidationError(
                f"Unknown wallpaper settings: {', '.join(sorted(unknown))}"
            )
        if not attrs:
            raise serializers.ValidationError("Provide at least one wallpaper setting.")
        return attrs
