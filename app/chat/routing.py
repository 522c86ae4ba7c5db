"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - The single real-time connection of a client device

Authentication:
    JWT token passed as ?token=<jwt>, an Authorization: Bearer header or
    the "jwt, <token>" subprotocol. JWTAuthMiddleware validates it and
    attaches the user to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
