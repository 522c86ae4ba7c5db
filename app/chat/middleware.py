"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections using the same
simplejwt access tokens as the REST API.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods (in order of precedence):
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Header: Authorization: Bearer <jwt_token>
    3. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

The middleware never rejects a handshake itself. It sets scope["user"]
to the authenticated user or AnonymousUser, and scope["auth_error"] to a
reason string when authentication failed, so the consumer can report the
failure to the client before closing.

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the JWT token from the handshake, validates it and attaches
    the user to the scope.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = (
            self._get_token_from_query(scope)
            or self._get_token_from_header(scope)
            or self._get_token_from_subprotocol(scope)
        )

        if token:
            user, error = await self._get_user_from_token(token)
        else:
            user, error = AnonymousUser(), "Authentication token not provided"

        scope["user"] = user
        scope["auth_error"] = error
        return await super().__call__(scope, receive, send)

    @staticmethod
    def _get_token_from_query(scope) -> str | None:
        query_string = scope.get("query_string", b"").decode()
        token_list = parse_qs(query_string).get("token", [])
        return token_list[0] if token_list else None

    @staticmethod
    def _get_token_from_header(scope) -> str | None:
        for name, value in scope.get("headers", []):
            if name.lower() == b"authorization":
                parts = value.decode().split()
                if len(parts) == 2 and parts[0].lower() == "bearer":
                    return parts[1]
        return None

    @staticmethod
    def _get_token_from_subprotocol(scope) -> str | None:
        """Expects: Sec-WebSocket-Protocol: jwt, <token>"""
        subprotocols = scope.get("subprotocols", [])
        if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
            return subprotocols[1]
        return None

    @database_sync_to_async
    def _get_user_from_token(self, token: str):
        """
        Validate a JWT access token and load its user.

        Returns:
            (user, None) on success, (AnonymousUser, reason) otherwise
        """
        User = get_user_model()

        try:
            access_token = AccessToken(token)
        except TokenError as e:
            logger.warning(f"Invalid JWT token on WebSocket handshake: {e}")
            return AnonymousUser(), "Invalid or expired token"

        user_id = access_token.get(api_settings.USER_ID_CLAIM)
        user = User.objects.filter(**{api_settings.USER_ID_FIELD: user_id}).first()
        if user is None:
            logger.warning(f"User not found for WebSocket token (user_id={user_id})")
            return AnonymousUser(), "User not found"
        if not user.is_active:
            logger.warning(f"Inactive user attempted WebSocket connection: {user_id}")
            return AnonymousUser(), "User is inactive"

        return user, None
