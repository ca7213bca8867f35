"""
ASGI config for the chat backend.

Routes two protocols:
- HTTP requests to Django (REST API, admin, schema)
- WebSocket connections on /ws/chat/ to chat.consumers.ChatConsumer

Run under Uvicorn:
    uvicorn config.asgi:application --host 0.0.0.0 --port 8000

Presence and room membership are process-local (see CHAT_REALTIME in
settings), so each ASGI worker owns the sessions connected to it while the
Redis channel layer delivers to any of them.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Initialize Django before importing models through the chat routing
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        # Origin check -> JWT authentication -> consumer routing
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
