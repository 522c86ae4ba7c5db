"""
WebSocket consumer for the chat application.

One connection per client device at ws/chat/. A connection is not bound
to a conversation; the client names the conversation in every event.

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Anonymous
    connections are accepted just long enough to receive an error event,
    then closed with code 4001.

Channel Groups:
    user_<id>: every connection of a user; the delivery router addresses
        users through this group
    presence: every connection; receives user-online-status broadcasts

Message Types (from client), envelope {"type": ..., "data": {...}}:
    - join-conversation / leave-conversation: start/stop viewing a conversation
    - typing / stop-typing: typing indicators
    - send-message: send a message
    - mark-read: move the read marker
    - change-wallpaper: change the conversation wallpaper

Message Types (to client), envelope {"type": ..., "data": {...}}:
    - connected, newMessage, notification, typing, stop-typing,
      message-read, chat-read, wallpaper-updated, user-online-status, error
"""

from __future__ import annotations

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from rest_framework.exceptions import ValidationError as DRFValidationError

from chat.constants import PRESENCE_CONFIG, user_group_name
from chat.delivery import (
    OutboundEvent,
    delivery_router,
    plan_conversation_change,
    plan_message_sent,
    plan_read,
    plan_typing,
)
from chat.events import InboundEvent, validate_payload
from chat.presence import get_presence_tracker
from chat.services import ConversationService, MessageService
from core.services import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)

# Close code sent after an authentication failure
CLOSE_AUTHENTICATION_FAILED = 4001


# =============================================================================
# Sync handlers (run in a worker thread)
# =============================================================================


def _load_conversation(user, conversation_id):
    return ConversationService.get_for_member(conversation_id, user)


def _typing(user, data, event):
    result = _load_conversation(user, data["conversationId"])
    if not result:
        return result, []
    conversation = result.data
    return result, plan_typing(
        event, conversation.id, user.id, conversation.member_ids()
    )


def _send_message(user, data, tracker):
    if data.get("isSystem"):
        return (
            ServiceResult.failure(
                "Clients cannot send system messages", error_code=ErrorCode.FORBIDDEN
            ),
            [],
        )
    result = _load_conversation(user, data["conversationId"])
    if not result:
        return result, []

    result = MessageService.send_message(
        result.data, user, data["content"], reply_to_id=data.get("replyTo")
    )
    if not result:
        return result, []
    outcome = result.data
    return result, plan_message_sent(
        outcome, tracker.viewers(outcome.message.conversation_id)
    )


def _mark_read(user, data):
    result = _load_conversation(user, data["conversationId"])
    if not result:
        return result, []
    result = MessageService.mark_read(result.data, user, data["messageId"])
    if not result:
        return result, []
    return result, plan_read(result.data)


def _change_wallpaper(user, data):
    result = _load_conversation(user, data["conversationId"])
    if not result:
        return result, []
    result = ConversationService.change_wallpaper(
        result.data, user, data["wallpaperPayload"]
    )
    if not result:
        return result, []
    return result, plan_conversation_change(result.data)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for real-time chat functionality.

    Handles:
        - Connection authentication and presence registration
        - Inbound event validation and dispatch
        - Forwarding chat.event messages from the channel layer to the client

    Attributes:
        user: Authenticated user (after connect)
        user_group: Channel layer group of the user
        viewing: Conversations this connection has joined
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.user_group: str | None = None
        self.viewing: set = set()
        self.handlers = {
            InboundEvent.JOIN_CONVERSATION: self.handle_join_conversation,
            InboundEvent.LEAVE_CONVERSATION: self.handle_leave_conversation,
            InboundEvent.TYPING: self.handle_typing,
            InboundEvent.STOP_TYPING: self.handle_stop_typing,
            InboundEvent.SEND_MESSAGE: self.handle_send_message,
            InboundEvent.MARK_READ: self.handle_mark_read,
            InboundEvent.CHANGE_WALLPAPER: self.handle_change_wallpaper,
        }

    @property
    def tracker(self):
        return get_presence_tracker()

    async def connect(self):
        """
        Handle WebSocket connection.

        Unauthenticated connections receive an AUTHENTICATION_FAILED error
        and are closed. Authenticated connections join their user group and
        the presence group, and the online set is broadcast if it changed.
        """
        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        user = self.scope.get("user")

        if not user or not user.is_authenticated:
            reason = self.scope.get("auth_error") or "Authentication required"
            logger.warning(f"Rejected unauthenticated WebSocket connection: {reason}")
            await self.accept(subprotocol=subprotocol)
            await self.send_error(ErrorCode.AUTHENTICATION_FAILED, reason)
            await self.close(code=CLOSE_AUTHENTICATION_FAILED)
            return

        self.user = user
        self.user_group = user_group_name(user.id)
        await self.channel_layer.group_add(self.user_group, self.channel_name)
        await self.channel_layer.group_add(
            PRESENCE_CONFIG.PRESENCE_GROUP, self.channel_name
        )
        await self.accept(subprotocol=subprotocol)

        came_online = self.tracker.on_connect(user.id)
        await self.send_event(OutboundEvent.CONNECTED, {"userId": user.id})
        logger.info(f"User {user.id} connected")

        if came_online:
            await delivery_router.broadcast_presence(self.tracker.list_online())

    async def disconnect(self, close_code):
        """Leave groups, unregister presence and broadcast if the user went offline."""
        if self.user is None:
            return

        await self.channel_layer.group_discard(self.user_group, self.channel_name)
        await self.channel_layer.group_discard(
            PRESENCE_CONFIG.PRESENCE_GROUP, self.channel_name
        )
        for conversation_id in self.viewing:
            self.tracker.leave_conversation(self.user.id, conversation_id)
        self.viewing.clear()

        went_offline = self.tracker.on_disconnect(self.user.id)
        logger.info(f"User {self.user.id} disconnected (code={close_code})")
        if went_offline:
            await delivery_router.broadcast_presence(self.tracker.list_online())

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """Decode a text frame; undecodable and binary frames get an error event."""
        if self.user is None:
            return

        if not text_data:
            logger.warning(f"User {self.user.id} sent a frame without text data")
            await self.send_error(ErrorCode.INVALID_ARGUMENT, "Expected a JSON text frame")
            return

        try:
            content = await self.decode_json(text_data)
        except json.JSONDecodeError as e:
            logger.warning(f"User {self.user.id} sent malformed JSON: {e}")
            await self.send_error(ErrorCode.INVALID_ARGUMENT, "Malformed JSON")
            return

        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Validate and dispatch an inbound event.

        Expected message format:
            {"type": "send-message", "data": {"conversationId": 1, "content": "Hi"}}

        Invalid events are answered with an error event; the connection
        stays open.
        """
        if self.user is None:
            return

        if not isinstance(content, dict):
            await self.send_error(ErrorCode.INVALID_ARGUMENT, "Expected a JSON object")
            return

        kind = InboundEvent.parse(content.get("type"))
        if kind is None:
            logger.warning(
                f"User {self.user.id} sent unknown event type: {content.get('type')!r}"
            )
            await self.send_error(
                ErrorCode.INVALID_ARGUMENT,
                f"Unknown event type: {content.get('type')}",
                event=content.get("type"),
            )
            return

        try:
            data = validate_payload(kind, content.get("data"))
        except DRFValidationError as e:
            logger.warning(f"User {self.user.id} sent invalid {kind.value} payload: {e.detail}")
            await self.send_error(
                ErrorCode.INVALID_ARGUMENT,
                "Invalid event payload",
                event=kind.value,
                details=e.detail,
            )
            return

        try:
            await self.handlers[kind](data)
        except Exception:
            logger.exception(f"Error handling {kind.value} from user {self.user.id}")
            await self.send_error(
                ErrorCode.INTERNAL, "An unexpected error occurred", event=kind.value
            )

    # -------------------------------------------------------------------------
    # Inbound handlers
    # -------------------------------------------------------------------------

    async def handle_join_conversation(self, data):
        conversation_id = data["conversationId"]
        result = await database_sync_to_async(_load_conversation)(
            self.user, conversation_id
        )
        if not result:
            await self.send_failure(result, InboundEvent.JOIN_CONVERSATION)
            return
        if conversation_id not in self.viewing:
            self.viewing.add(conversation_id)
            self.tracker.enter_conversation(self.user.id, conversation_id)

    async def handle_leave_conversation(self, data):
        conversation_id = data["conversationId"]
        if conversation_id in self.viewing:
            self.viewing.discard(conversation_id)
            self.tracker.leave_conversation(self.user.id, conversation_id)

    async def handle_typing(self, data):
        await self._relay_typing(data, InboundEvent.TYPING)

    async def handle_stop_typing(self, data):
        await self._relay_typing(data, InboundEvent.STOP_TYPING)

    async def _relay_typing(self, data, kind: InboundEvent):
        # inbound and outbound typing events share their names
        result, deliveries = await database_sync_to_async(_typing)(
            self.user, data, kind.value
        )
        if not result:
            await self.send_failure(result, kind)
            return
        await delivery_router.dispatch(deliveries)

    async def handle_send_message(self, data):
        result, deliveries = await database_sync_to_async(_send_message)(
            self.user, data, self.tracker
        )
        if not result:
            await self.send_failure(result, InboundEvent.SEND_MESSAGE)
            return
        await delivery_router.dispatch(deliveries)

    async def handle_mark_read(self, data):
        result, deliveries = await database_sync_to_async(_mark_read)(self.user, data)
        if not result:
            await self.send_failure(result, InboundEvent.MARK_READ)
            return
        await delivery_router.dispatch(deliveries)

    async def handle_change_wallpaper(self, data):
        result, deliveries = await database_sync_to_async(_change_wallpaper)(
            self.user, data
        )
        if not result:
            await self.send_failure(result, InboundEvent.CHANGE_WALLPAPER)
            return
        await delivery_router.dispatch(deliveries)

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def chat_event(self, event):
        """
        Handle chat.event messages from the channel layer.

        Sends the event to the WebSocket client unchanged.
        """
        await self.send_event(event["event"], event["data"])

    async def send_event(self, event: str, data: dict):
        await self.send_json({"type": event, "data": data})

    async def send_error(self, error_code: str, message: str, event=None, details=None):
        data = {"error_code": error_code, "message": message, "event": event}
        if details:
            data["details"] = details
        await self.send_event(OutboundEvent.ERROR, data)

    async def send_failure(self, result: ServiceResult, kind: InboundEvent):
        logger.info(
            f"{kind.value} from user {self.user.id} failed: "
            f"{result.error_code} {result.error}"
        )
        await self.send_error(
            result.error_code, result.error, event=kind.value, details=result.errors
        )
