"""
WebSocket authentication middleware.

Verifies the bearer credential of a WebSocket handshake with
rest_framework_simplejwt and attaches the user to the connection scope.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: Closes unauthenticated connections with code 4001
    - config/asgi.py: ASGI configuration

Token Passing Methods (in order of precedence):
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
    3. Header: Authorization: Bearer <jwt_token>

Scope keys set:
    scope["user"]        User or AnonymousUser
    scope["auth_error"]  AuthenticationError when verification failed, else None
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

from core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def get_token_from_query(scope) -> str | None:
    query_string = scope.get("query_string", b"").decode()
    token_list = parse_qs(query_string).get("token", [])
    return token_list[0] if token_list else None


def get_token_from_subprotocol(scope) -> str | None:
    """Expects: Sec-WebSocket-Protocol: jwt, <token>"""
    subprotocols = scope.get("subprotocols", [])
    if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
        return subprotocols[1]
    return None


def get_token_from_header(scope) -> str | None:
    for name, value in scope.get("headers", []):
        if name.lower() == b"authorization":
            scheme, _, token = value.decode().partition(" ")
            if scheme.lower() == "bearer" and token:
                return token.strip()
    return None


@database_sync_to_async
def get_user_for_token(token: str):
    """
    Validate a JWT access token and load its user.

    Raises:
        AuthenticationError: Invalid/expired token, unknown or inactive user
    """
    try:
        access_token = AccessToken(token)
    except TokenError as e:
        raise AuthenticationError(f"Invalid token: {e}", error_code="INVALID_TOKEN") from e

    user_id = access_token.get(api_settings.USER_ID_CLAIM)
    user = get_user_model().objects.filter(pk=user_id).first()
    if user is None:
        raise AuthenticationError("User not found", error_code="USER_NOT_FOUND")
    if not user.is_active:
        raise AuthenticationError("User account is disabled", error_code="USER_INACTIVE")
    return user


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Never rejects the handshake itself; the consumer decides what to do
    with an anonymous scope so that the close code is under its control.

    Usage:
        application = ProtocolTypeRouter({
            "websocket": JWTAuthMiddleware(URLRouter(websocket_urlpatterns)),
        })
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = (
            get_token_from_query(scope)
            or get_token_from_subprotocol(scope)
            or get_token_from_header(scope)
        )

        scope["user"] = AnonymousUser()
        scope["auth_error"] = None
        if not token:
            scope["auth_error"] = AuthenticationError(
                "No token provided", error_code="TOKEN_MISSING"
            )
        else:
            try:
                scope["user"] = await get_user_for_token(token)
            except AuthenticationError as e:
                logger.warning(f"WebSocket authentication failed: {e}")
                scope["auth_error"] = e

        return await super().__call__(scope, receive, send)
