"""
Serializers for the User model.

Related files:
    - views.py: CurrentUserView
    - chat/serializers.py: embeds UserSummarySerializer in messages and participants
"""

from rest_framework import serializers

from authentication.models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in chat payloads."""

    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "full_name", "avatar", "status", "last_seen"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """
    Current user representation.

    Only full_name and avatar are writable; status changes go through the
    WebSocket change_status event so that other users are notified.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "full_name",
            "avatar",
            "status",
            "last_seen",
            "date_joined",
        ]
        read_only_fields = ["id", "email", "status", "last_seen", "date_joined"]
