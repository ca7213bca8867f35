"""
Authentication views.

Endpoints:
    - POST /api/v1/auth/token/          obtain access + refresh JWT
    - POST /api/v1/auth/token/refresh/  refresh access JWT
    - GET/PATCH /api/v1/auth/me/        current user

The access token obtained here is the bearer credential presented when
opening the chat WebSocket (see chat.middleware.JWTAuthMiddleware).
"""

from drf_spectacular.utils import extend_schema
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from authentication.serializers import UserSerializer


@extend_schema(tags=["Auth"])
class CurrentUserView(generics.RetrieveUpdateAPIView):
    """Retrieve or update the authenticated user's display fields."""

    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]
    http_method_names = ["get", "patch", "head", "options"]

    def get_object(self):
        return self.request.user
