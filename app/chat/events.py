"""
Inbound WebSocket events.

Clients send envelopes of the form {"type": <event>, "data": <payload>}.
The set of event kinds is closed; each kind has a serializer that
validates its payload before the gateway acts on it.

    kind = InboundEvent.parse(envelope.get("type"))
    serializer = PAYLOAD_SERIALIZERS[kind](data=envelope.get("data") or {})
    serializer.is_valid(raise_exception=True)

Payload keys use the wire naming (camelCase).
"""

from __future__ import annotations

from enum import Enum

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG, WALLPAPER_DEFAULTS


class InboundEvent(str, Enum):
    JOIN_CONVERSATION = "join-conversation"
    LEAVE_CONVERSATION = "leave-conversation"
    TYPING = "typing"
    STOP_TYPING = "stop-typing"
    SEND_MESSAGE = "send-message"
    MARK_READ = "mark-read"
    CHANGE_WALLPAPER = "change-wallpaper"

    @classmethod
    def parse(cls, value) -> InboundEvent | None:
        """The event for a wire name, or None if it is not a known kind."""
        try:
            return cls(value)
        except ValueError:
            return None


class ConversationEventSerializer(serializers.Serializer):
    """Payload of join/leave/typing/stop-typing."""

    conversationId = serializers.IntegerField()


class SendMessageEventSerializer(serializers.Serializer):
    """
    Payload of send-message.

    senderInfo and recipientIds are accepted from older clients but never
    used: the sender is the authenticated user and recipients come from
    the conversation's membership.
    """

    conversationId = serializers.IntegerField()
    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH, trim_whitespace=True
    )
    replyTo = serializers.IntegerField(required=False, allow_null=True)
    isSystem = serializers.BooleanField(required=False, default=False)
    senderInfo = serializers.DictField(required=False)
    recipientIds = serializers.ListField(child=serializers.IntegerField(), required=False)


class MarkReadEventSerializer(serializers.Serializer):
    conversationId = serializers.IntegerField()
    messageId = serializers.IntegerField()


class ChangeWallpaperEventSerializer(serializers.Serializer):
    conversationId = serializers.IntegerField()
    wallpaperPayload = serializers.DictField()
    actorName = serializers.CharField(required=False, allow_blank=True)

    def validate_wallpaperPayload(self, value):
        if not value:
            raise serializers.ValidationError("Provide at least one wallpaper setting.")
        unknown = set(value) - set(WALLPAPER_DEFAULTS)
        if unknown:
            raise serializers.ValidationError(
                f"Unknown wallpaper settings: {', '.join(sorted(unknown))}"
            )
        return value


PAYLOAD_SERIALIZERS = {
    InboundEvent.JOIN_CONVERSATION: ConversationEventSerializer,
    InboundEvent.LEAVE_CONVERSATION: ConversationEventSerializer,
    InboundEvent.TYPING: ConversationEventSerializer,
    InboundEvent.STOP_TYPING: ConversationEventSerializer,
    InboundEvent.SEND_MESSAGE: SendMessageEventSerializer,
    InboundEvent.MARK_READ: MarkReadEventSerializer,
    InboundEvent.CHANGE_WALLPAPER: ChangeWallpaperEventSerializer,
}


def validate_payload(kind: InboundEvent, payload) -> dict:
    """
    Validate an inbound payload.

    Raises:
        rest_framework.exceptions.ValidationError: payload is invalid
    """
    if not isinstance(payload, dict):
        raise serializers.ValidationError({"data": ["Expected an object."]})
    serializer = PAYLOAD_SERIALIZERS[kind](data=payload)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data
