"""
Serializers for authentication models.

Only the public, read-only view of a user is exposed; the chat API embeds
it wherever a member, sender or actor is shown.
"""

from rest_framework import serializers

from authentication.models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Public display data for a user (id, username, avatar)."""

    username = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "avatar"]
        read_only_fields = fields
