"""
Notification models.

Design Decisions:
    - Notification inherits from BaseModel (timestamps, ordering)
    - Actor and conversation use SET_NULL so a notification survives
      their deletion; actor_name keeps the display name it was sent with
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Kinds of notification delivered to a single user."""

    FRIEND_REQUEST = "friend_request", "Friend Request"
    REQUEST_ACCEPTED = "request_accepted", "Request Accepted"
    GROUP_ADDED = "group_added", "Added to Group"
    NEW_MESSAGE = "new_message", "New Message"


# Types that are written to the database; the rest are real-time only.
PERSISTED_TYPES = frozenset(
    {
        NotificationType.FRIEND_REQUEST,
        NotificationType.REQUEST_ACCEPTED,
        NotificationType.GROUP_ADDED,
    }
)


class Notification(BaseModel):
    """
    A notification addressed to one user.

    Fields:
        recipient: User receiving the notification
        actor: User who triggered it (optional)
        actor_name: Display name of the actor at creation time
        notification_type: One of NotificationType
        conversation: Related conversation (optional)
        message: Human-readable text
        is_read: Whether the recipient has seen it
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="triggered_notifications",
        help_text="User who triggered this notification",
    )
    actor_name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Display name of the actor when the notification was created",
    )
    notification_type = models.CharField(
        max_length=20,
        choices=NotificationType.choices,
        help_text="Kind of notification",
    )
    conversation = models.ForeignKey(
        "chat.Conversation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Conversation this notification refers to",
    )
    message = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Human-readable notification text",
    )
    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the recipient has read this notification",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.notification_type} for {self.recipient_id}"
