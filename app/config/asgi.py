"""
ASGI entry point for the chat backend.

HTTP goes to Django. WebSocket connections at ws/chat/ go through the
origin check (CORS_ALLOWED_ORIGINS) and JWTAuthMiddleware before reaching
ChatConsumer. Lifespan events drain the presence registry on shutdown.

Run with:
    uvicorn config.asgi:application
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Must run before any model import
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import OriginValidator  # noqa: E402
from django.conf import settings  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.presence import presence_lifespan  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "lifespan": presence_lifespan,
        "websocket": OriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns)),
            settings.CORS_ALLOWED_ORIGINS,
        ),
    }
)
