"""
Notifications app: the notification sink for chat and social events.

This app provides:
- Notification model for persisted notifications (friend requests,
  accepted requests, group invitations)
- NotificationService for creating notifications and building the
  real-time payload delivered to a single user's channel

New-message notifications are delivered in real time only and are not
stored.

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=user,
        notification_type=NotificationType.GROUP_ADDED,
        actor=admin,
        conversation=group,
        message=f"{admin.display_name} added you to {group.title}",
    )
"""
