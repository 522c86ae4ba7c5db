"""
Chat application configuration.

This app provides the conversation state engine:
- Direct and group conversations with an admin set and permission policy
- Encrypted message storage, read markers and read receipts
- WebSocket gateway with presence and typing signals
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    def ready(self):
        """
        Build the content codec and the presence tracker.

        The codec is built eagerly so a missing CHAT_ENCRYPTION_SECRET
        fails at startup instead of on the first message.
        """
        from chat.encryption import get_codec
        from chat.presence import PresenceTracker

        get_codec()
        self.presence = PresenceTracker()
