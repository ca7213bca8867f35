"""
Chat app: the real-time messaging and presence core.

This app handles:
- Conversations (direct and group) and their participants
- Encrypted message persistence, edits, deletes, reactions and receipts
- Presence tracking and conversation scopes for WebSocket sessions
- Fan-out of outbound events and call signaling relay

Related apps:
    - authentication: User model and persisted status / last seen

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationService, MessageService

    conversation = ConversationService.create_direct(user, other_user.pk).data

    result = MessageService.send_message(
        conversation, user, MessageType.TEXT, content="Hello!"
    )
"""
