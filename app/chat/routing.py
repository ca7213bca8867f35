"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - One connection per client device

Authentication:
    JWT access token via ?token=, the "jwt, <token>" subprotocol or an
    Authorization header; see chat.middleware.JWTAuthMiddleware.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
