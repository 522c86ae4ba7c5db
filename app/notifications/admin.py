"""Django admin configuration for notification models."""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Admin configuration for Notification."""

    list_display = [
        "id",
        "recipient",
        "notification_type",
        "actor_name",
        "is_read",
        "created_at",
    ]
    list_filter = ["notification_type", "is_read", "created_at"]
    search_fields = ["recipient__email", "actor_name", "message"]
    raw_id_fields = ["recipient", "actor", "conversation"]
    readonly_fields = ["created_at", "updated_at"]
