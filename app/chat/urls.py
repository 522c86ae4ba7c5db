"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/direct/                   POST
        /conversations/group/                    POST
        /conversations/{id}/                     GET
        /conversations/{id}/rename/              PUT
        /conversations/{id}/avatar/              PUT
        /conversations/{id}/members/add/         PUT
        /conversations/{id}/members/remove/      PUT
        /conversations/{id}/leave/               POST
        /conversations/{id}/admins/              POST
        /conversations/{id}/permissions/         PATCH
        /conversations/{id}/wallpaper/           PUT
        /conversations/{id}/hide/                POST
        /conversations/{id}/read/                POST

    Messages:
        /conversations/{id}/messages/            GET, POST
        /conversations/{id}/messages/{pk}/       PATCH, DELETE

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ConversationViewSet, MessageViewSet

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    # Nested routes for messages
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/",
        MessageViewSet.as_view({"patch": "partial_update", "delete": "destroy"}),
        name="conversation-message-detail",
    ),
]
