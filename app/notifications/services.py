"""
Notification service layer.

NotificationService is the single entry point for creating notifications.
It persists the kinds that are stored and builds the payload the
delivery router pushes to the recipient's channel.

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=bob,
        notification_type=NotificationType.GROUP_ADDED,
        actor=alice,
        conversation=group,
        message="alice added you to Weekend",
    )
    payload = NotificationService.to_payload(result.data)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService, ErrorCode, ServiceResult
from notifications.models import PERSISTED_TYPES, Notification, NotificationType

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import Conversation


class NotificationService(BaseService):
    """Creation and serialization of notifications."""

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        notification_type: str,
        actor: User | None = None,
        conversation: Conversation | None = None,
        message: str = "",
    ) -> ServiceResult[Notification]:
        """
        Create a notification for one user.

        Persisted types are saved; NEW_MESSAGE notifications are returned
        unsaved (pk is None) so they can still be delivered.

        Error codes:
            INVALID_ARGUMENT: Unknown notification type
        """
        if notification_type not in NotificationType.values:
            return ServiceResult.failure(
                f"Unknown notification type: {notification_type}",
                error_code=ErrorCode.INVALID_ARGUMENT,
            )

        notification = Notification(
            recipient=recipient,
            actor=actor,
            actor_name=actor.display_name if actor else "",
            notification_type=notification_type,
            conversation=conversation,
            message=message,
        )
        if notification_type in PERSISTED_TYPES:
            notification.save()
            cls.get_logger().info(
                f"Created {notification_type} notification {notification.id} "
                f"for user {recipient.id}"
            )
        else:
            notification.created_at = timezone.now()

        return ServiceResult.success(notification)

    @staticmethod
    def to_payload(notification: Notification) -> dict:
        """Real-time payload for a notification event."""
        return {
            "id": notification.pk,
            "type": notification.notification_type,
            "actorId": notification.actor_id,
            "actorName": notification.actor_name,
            "conversationId": notification.conversation_id,
            "message": notification.message,
            "timestamp": notification.created_at.isoformat(),
        }
