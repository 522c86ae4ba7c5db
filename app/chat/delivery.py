"""
Delivery router: turns stored state changes into outbound real-time events.

Every connection of a user joins the channel-layer group user_<id>, so
addressing a user reaches all of their devices. Sending to a user with no
open connection is a silent no-op of the channel layer.

Recipient rules:
    - Member message: every member except the sender, plus a new_message
      notification for those not currently viewing the conversation
    - System message: every member including the actor, plus users who
      were just removed so their UI can drop the conversation
    - Typing / stop-typing: every other member
    - Read marker (message-read) / conversation opened (chat-read):
      every other member
    - Wallpaper change: wallpaper-updated to every member
    - Notification: the single recipient
    - Presence: every connection (presence group)

Usage:
    The router is split into sync planning and async dispatch. Planning
    reads the database (serializers, user lookups) and must run in sync
    code; dispatch only talks to the channel layer.

        # sync (views)
        deliveries = plan_message_sent(outcome, viewers)
        delivery_router.dispatch_on_commit(deliveries)

        # async (consumers)
        deliveries = await database_sync_to_async(plan_message_sent)(outcome, viewers)
        await delivery_router.dispatch(deliveries)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

from authentication.services import ContactService
from chat.constants import PRESENCE_CONFIG, user_group_name
from chat.models import SystemMessageEvent
from chat.serializers import MessageSerializer
from notifications.models import NotificationType
from notifications.services import NotificationService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Message
    from chat.services import ConversationChange, MessageSent, ReadReceipt

logger = logging.getLogger(__name__)


class OutboundEvent:
    """Event names sent to clients."""

    CONNECTED = "connected"
    NEW_MESSAGE = "newMessage"
    NOTIFICATION = "notification"
    TYPING = "typing"
    STOP_TYPING = "stop-typing"
    MESSAGE_READ = "message-read"
    CHAT_READ = "chat-read"
    WALLPAPER_UPDATED = "wallpaper-updated"
    USER_ONLINE_STATUS = "user-online-status"
    ERROR = "error"


# Channel-layer message type handled by ChatConsumer.chat_event
CHAT_EVENT = "chat.event"


@dataclass(frozen=True)
class Delivery:
    """One outbound event addressed to one user."""

    recipient_id: int
    event: str
    data: dict


# =============================================================================
# Recipient computation
# =============================================================================


def other_members(member_ids: Iterable, user_id) -> list:
    """Members except user_id, order preserved."""
    return [member_id for member_id in member_ids if member_id != user_id]


def message_recipients(message: Message, member_ids: Iterable, extra_ids: Iterable = ()) -> list:
    """
    Users who receive a newMessage event for message.

    System messages go to every member (the actor included) plus
    extra_ids; member messages go to every member except the sender.
    """
    if message.is_system:
        return list(dict.fromkeys([*member_ids, *extra_ids]))
    return other_members(member_ids, message.sender_id)


# =============================================================================
# Planning (sync)
# =============================================================================


def plan_message_sent(outcome: MessageSent, viewer_ids: Iterable = ()) -> list[Delivery]:
    """newMessage to other members plus new_message notifications for non-viewers."""
    message = outcome.message
    payload = dict(MessageSerializer(message).data)
    recipients = message_recipients(message, outcome.member_ids)
    deliveries = [
        Delivery(recipient_id, OutboundEvent.NEW_MESSAGE, payload)
        for recipient_id in recipients
    ]

    viewing = set(viewer_ids)
    to_notify = [recipient_id for recipient_id in recipients if recipient_id not in viewing]
    if to_notify:
        users = ContactService.get_active_users(to_notify)
        for recipient_id in to_notify:
            recipient = users.get(recipient_id)
            if recipient is None:
                continue
            result = NotificationService.create_notification(
                recipient=recipient,
                notification_type=NotificationType.NEW_MESSAGE,
                actor=message.sender,
                conversation=message.conversation,
                message=message.content,
            )
            deliveries.extend(plan_notification(result.data))
    return deliveries


def plan_conversation_change(change: ConversationChange) -> list[Delivery]:
    """System message, notifications and wallpaper updates for a mutation."""
    deliveries = []
    message = change.system_message
    if message is not None:
        payload = dict(MessageSerializer(message).data)
        deliveries.extend(
            Delivery(recipient_id, OutboundEvent.NEW_MESSAGE, payload)
            for recipient_id in message_recipients(
                message, change.member_ids, change.removed_user_ids
            )
        )

        if message.system_event == SystemMessageEvent.WALLPAPER_CHANGED:
            wallpaper_payload = {
                "conversationId": change.conversation.id,
                "wallpaper": change.conversation.wallpaper,
                "userId": change.actor_id,
            }
            deliveries.extend(
                Delivery(member_id, OutboundEvent.WALLPAPER_UPDATED, wallpaper_payload)
                for member_id in change.member_ids
            )

    for notification in change.notifications:
        deliveries.extend(plan_notification(notification))
    return deliveries


def plan_read(receipt: ReadReceipt) -> list[Delivery]:
    """
    message-read for an explicit marker move, chat-read when a whole
    conversation was opened (no message id).
    """
    payload = {"conversationId": receipt.conversation_id, "userId": receipt.user_id}
    if receipt.message_id is not None:
        event = OutboundEvent.MESSAGE_READ
        payload["messageId"] = receipt.message_id
    else:
        event = OutboundEvent.CHAT_READ
    return [
        Delivery(member_id, event, payload)
        for member_id in other_members(receipt.member_ids, receipt.user_id)
    ]


def plan_typing(event: str, conversation_id, user_id, member_ids: Iterable) -> list[Delivery]:
    """typing / stop-typing to every other member; never persisted."""
    payload = {"conversationId": conversation_id, "userId": user_id}
    return [
        Delivery(member_id, event, payload)
        for member_id in other_members(member_ids, user_id)
    ]


def plan_notification(notification) -> list[Delivery]:
    """notification event for the single recipient of a stored notification."""
    return [
        Delivery(
            notification.recipient_id,
            OutboundEvent.NOTIFICATION,
            NotificationService.to_payload(notification),
        )
    ]


# =============================================================================
# Dispatch (async)
# =============================================================================


class DeliveryRouter:
    """Pushes planned deliveries through the channel layer."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    async def send_to_user(self, user_id, event: str, data: dict) -> None:
        await self.channel_layer.group_send(
            user_group_name(user_id),
            {"type": CHAT_EVENT, "event": event, "data": data},
        )

    async def dispatch(self, deliveries: Iterable[Delivery]) -> None:
        count = 0
        for delivery in deliveries:
            await self.send_to_user(delivery.recipient_id, delivery.event, delivery.data)
            count += 1
        logger.debug(f"Dispatched {count} deliveries")

    async def broadcast_presence(self, online_user_ids: Iterable) -> None:
        """Send the full online set to every connected user."""
        await self.channel_layer.group_send(
            PRESENCE_CONFIG.PRESENCE_GROUP,
            {
                "type": CHAT_EVENT,
                "event": OutboundEvent.USER_ONLINE_STATUS,
                "data": {
                    "onlineUsers": sorted(online_user_ids),
                    "timestamp": timezone.now().isoformat(),
                },
            },
        )

    def dispatch_on_commit(self, deliveries: list[Delivery]) -> None:
        """
        Dispatch from sync code once the surrounding transaction commits.

        Outside a transaction the deliveries are sent immediately.
        """
        if not deliveries:
            return
        transaction.on_commit(lambda: async_to_sync(self.dispatch)(deliveries))


delivery_router = DeliveryRouter()
