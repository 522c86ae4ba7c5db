"""
Permission classes for chat API.

- IsConversationMember: User is an active member of the conversation

Sender-only edits, group policy checks (rename, addMember, removeMember,
groupAvatar) and admin-only actions are enforced by the service layer,
which holds the conversation lock while checking them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.models import Conversation, Message

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsConversationMember(permissions.BasePermission):
    """Allows access only to active members of the conversation."""

    message = "You are not a member of this conversation."

    def has_object_permission(
        self, request: Request, view: APIView, obj: Conversation | Message
    ) -> bool:
        if not request.user.is_authenticated:
            return False
        conversation = obj.conversation if isinstance(obj, Message) else obj
        return conversation.is_member(request.user.id)

