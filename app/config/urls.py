"""
Root URL configuration for the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/chat/                  - Chat endpoints
        conversations/direct/      - Access or create a direct conversation
        conversations/group/       - Create a group
        conversations/{id}/        - Conversation detail
        conversations/{id}/rename/, avatar/, members/add/, members/remove/,
            leave/, admins/, permissions/, wallpaper/, hide/, read/
        conversations/{id}/messages/      - History / send
        conversations/{id}/messages/{pk}/ - Edit / delete
    /ws/chat/                      - WebSocket gateway (see config/asgi.py)

Bearer tokens are issued by the accounts service and verified here with
the shared JWT_SIGNING_KEY.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Chat
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations and messages"
