"""
Chat application configuration.

This app provides the real-time chat core:
- Direct (1:1) and group conversations with admins
- Encrypted messages with reactions and receipts
- Presence, room membership and event fan-out for WebSocket sessions
- Call signaling relay
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
