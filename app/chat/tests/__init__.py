"""
Tests for chat app.

This package contains test modules for:
- test_presence.py / test_rooms.py: Session and scope bookkeeping
- test_events.py / test_dispatcher.py / test_signaling.py: Fan-out
- test_encryption.py: Message cipher
- test_services.py: Conversation, message, receipt and reaction services
- test_middleware.py / test_consumers.py: WebSocket authentication and handlers
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
