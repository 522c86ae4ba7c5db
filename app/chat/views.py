"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation creation, details and settings actions
- MessageViewSet: Message history and operations (nested under conversation)

URL Structure:
    /api/v1/chat/conversations/direct/                  POST
    /api/v1/chat/conversations/group/                   POST
    /api/v1/chat/conversations/{id}/                    GET
    /api/v1/chat/conversations/{id}/rename/             PUT
    /api/v1/chat/conversations/{id}/avatar/             PUT
    /api/v1/chat/conversations/{id}/members/add/        PUT
    /api/v1/chat/conversations/{id}/members/remove/     PUT
    /api/v1/chat/conversations/{id}/leave/              POST
    /api/v1/chat/conversations/{id}/admins/             POST
    /api/v1/chat/conversations/{id}/permissions/        PATCH
    /api/v1/chat/conversations/{id}/wallpaper/          PUT
    /api/v1/chat/conversations/{id}/hide/               POST
    /api/v1/chat/conversations/{id}/read/               POST
    /api/v1/chat/conversations/{id}/messages/           GET, POST
    /api/v1/chat/conversations/{id}/messages/{pk}/      PATCH, DELETE

Design Decisions:
    - All operations use the service layer for business logic
    - Failed service results are raised as application exceptions and
      rendered by core.exceptions.application_exception_handler
    - Real-time fan-out is handed to the delivery router and sent only
      after the request's transaction commits
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from chat.delivery import (
    delivery_router,
    plan_conversation_change,
    plan_message_sent,
    plan_read,
)
from chat.models import Conversation, Message
from chat.permissions import IsConversationMember
from chat.presence import get_presence_tracker
from chat.serializers import (
    AvatarSerializer,
    ConversationSerializer,
    DirectConversationCreateSerializer,
    GroupConversationCreateSerializer,
    MarkReadSerializer,
    MemberIdsSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    PermissionsSerializer,
    PromoteAdminSerializer,
    RenameSerializer,
    WallpaperSerializer,
)
from chat.services import ConversationService, MessageService, ParticipantService


def _unwrap(result):
    """Return the data of a successful result or raise its exception."""
    if not result:
        raise result.to_exception()
    return result.data


class ConversationViewSet(viewsets.GenericViewSet):
    """
    ViewSet for conversation operations.

    retrieve:
        Conversation details: members, admins, permission policy,
        wallpaper, latest message and read markers.

    direct:
        Access or create the direct conversation with a contact.

    group:
        Create a group with the requester as admin.

    rename / avatar / members_add / members_remove:
        Group settings gated by the group's permission policy.

    admins / permissions:
        Admin-only actions.

    leave:
        Leave a group. The last admin leaving hands over to a random member.

    wallpaper:
        Any member may change the wallpaper.

    hide:
        Hide the conversation from the requester's list.

    read:
        Move the requester's read marker.
    """

    queryset = Conversation.objects.select_related("latest_message__sender")
    serializer_class = ConversationSerializer
    permission_classes = [IsAuthenticated, IsConversationMember]

    def _respond_with_change(self, change, status_code=status.HTTP_200_OK):
        delivery_router.dispatch_on_commit(plan_conversation_change(change))
        return Response(
            ConversationSerializer(change.conversation, context=self.get_serializer_context()).data,
            status=status_code,
        )

    def _validated(self, serializer_class):
        serializer = serializer_class(data=self.request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
    )
    def retrieve(self, request, pk=None):
        conversation = self.get_object()
        return Response(self.get_serializer(conversation).data)

    @extend_schema(
        operation_id="create_direct_conversation",
        summary="Access or create a direct conversation",
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationSerializer,
            403: OpenApiResponse(description="User is not a contact"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        data = self._validated(DirectConversationCreateSerializer)
        conversation = _unwrap(
            ConversationService.create_direct(request.user, data["user_id"])
        )
        return Response(self.get_serializer(conversation).data)

    @extend_schema(
        operation_id="create_group_conversation",
        summary="Create a group conversation",
        request=GroupConversationCreateSerializer,
        responses={201: ConversationSerializer},
        tags=["Chat - Conversations"],
    )
    @action(detail=False, methods=["post"])
    def group(self, request):
        data = self._validated(GroupConversationCreateSerializer)
        change = _unwrap(
            ConversationService.create_group(
                request.user, data["user_ids"], data["title"], data.get("avatar")
            )
        )
        return self._respond_with_change(change, status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="rename_conversation",
        summary="Rename group",
        request=RenameSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["put"])
    def rename(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(RenameSerializer)
        change = _unwrap(ConversationService.rename(conversation, request.user, data["title"]))
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="change_group_avatar",
        summary="Change group avatar",
        request=AvatarSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["put"])
    def avatar(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(AvatarSerializer)
        change = _unwrap(
            ConversationService.change_avatar(conversation, request.user, data["avatar"])
        )
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="add_group_members",
        summary="Add members",
        request=MemberIdsSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["put"], url_path="members/add")
    def members_add(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(MemberIdsSerializer)
        change = _unwrap(
            ParticipantService.add_members(conversation, request.user, data["user_ids"])
        )
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="remove_group_members",
        summary="Remove members",
        request=MemberIdsSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["put"], url_path="members/remove")
    def members_remove(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(MemberIdsSerializer)
        change = _unwrap(
            ParticipantService.remove_members(conversation, request.user, data["user_ids"])
        )
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="leave_conversation",
        summary="Leave group",
        request=None,
        responses={200: OpenApiResponse(description="Left the group")},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        conversation = self.get_object()
        change = _unwrap(ParticipantService.leave(conversation, request.user))
        delivery_router.dispatch_on_commit(plan_conversation_change(change))
        return Response({"status": "left", "new_admin_id": change.new_admin_id})

    @extend_schema(
        operation_id="promote_group_admin",
        summary="Make a member an admin",
        request=PromoteAdminSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["post"])
    def admins(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(PromoteAdminSerializer)
        change = _unwrap(
            ParticipantService.promote_admin(conversation, request.user, data["user_id"])
        )
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="update_group_permissions",
        summary="Update group permission policy",
        request=PermissionsSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["patch"])
    def permissions(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(PermissionsSerializer)
        change = _unwrap(
            ConversationService.update_permissions(conversation, request.user, dict(data))
        )
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="change_conversation_wallpaper",
        summary="Change wallpaper",
        request=WallpaperSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["put"])
    def wallpaper(self, request, pk=None):
        conversation = self.get_object()
        serializer = WallpaperSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        change = _unwrap(
            ConversationService.change_wallpaper(
                conversation, request.user, dict(serializer.validated_data)
            )
        )
        return self._respond_with_change(change)

    @extend_schema(
        operation_id="hide_conversation",
        summary="Hide conversation",
        request=None,
        responses={204: None},
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def hide(self, request, pk=None):
        conversation = self.get_object()
        _unwrap(ConversationService.hide_for_user(conversation, request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=MarkReadSerializer,
        responses={200: OpenApiResponse(description="Read marker moved")},
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        conversation = self.get_object()
        data = self._validated(MarkReadSerializer)
        receipt = _unwrap(
            MessageService.mark_read(conversation, request.user, data["message_id"])
        )
        delivery_router.dispatch_on_commit(plan_read(receipt))
        return Response({"status": "read", "message_id": receipt.message_id})


class MessageViewSet(viewsets.GenericViewSet):
    """
    ViewSet for message operations within a conversation.

    list:
        Full decrypted history, oldest first. Opening the history marks
        every message read by the requester and notifies other members.

    create:
        Send a message.

    partial_update:
        Edit one's own message.

    destroy:
        Soft delete one's own message.
    """

    serializer_class = MessageSerializer
    permission_classes = [IsAuthenticated, IsConversationMember]

    def get_conversation(self) -> Conversation:
        """Get the parent conversation from the URL, checking membership."""
        conversation = get_object_or_404(Conversation, pk=self.kwargs.get("conversation_pk"))
        self.check_object_permissions(self.request, conversation)
        return conversation

    def get_queryset(self):
        return (
            Message.objects.filter(
                conversation_id=self.kwargs.get("conversation_pk"), is_deleted=False
            )
            .select_related("conversation", "sender", "reply_to__sender")
            .prefetch_related("read_by")
        )

    @extend_schema(
        operation_id="list_messages",
        summary="Get conversation history",
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    )
    def list(self, request, conversation_pk=None):
        conversation = self.get_conversation()
        messages, receipt = _unwrap(MessageService.get_history(conversation, request.user))
        delivery_router.dispatch_on_commit(plan_read(receipt))
        return Response(self.get_serializer(messages, many=True).data)

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
        tags=["Chat - Messages"],
    )
    def create(self, request, conversation_pk=None):
        conversation = self.get_conversation()
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = _unwrap(
            MessageService.send_message(
                conversation,
                request.user,
                serializer.validated_data["content"],
                reply_to_id=serializer.validated_data.get("reply_to"),
            )
        )
        viewers = get_presence_tracker().viewers(conversation.id)
        delivery_router.dispatch_on_commit(plan_message_sent(outcome, viewers))
        return Response(
            self.get_serializer(outcome.message).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageEditSerializer,
        responses={200: MessageSerializer},
        tags=["Chat - Messages"],
    )
    def partial_update(self, request, conversation_pk=None, pk=None):
        message = self.get_object()
        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = _unwrap(
            MessageService.edit_message(
                message, request.user, serializer.validated_data["content"]
            )
        )
        return Response(self.get_serializer(message).data)

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        responses={204: None},
        tags=["Chat - Messages"],
    )
    def destroy(self, request, conversation_pk=None, pk=None):
        message = self.get_object()
        _unwrap(MessageService.delete_message(message, request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)
