"""
Constants and configuration for the chat core.

This module centralizes values for:
- Message validation and history paging
- Conversation membership rules
- Real-time connection handling (close codes, scope names, placeholders)

Import example:
    from chat.constants import MESSAGE_CONFIG, REALTIME_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # History paging (page/limit query parameters)
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 100

    # Shown instead of content that cannot be decrypted
    DECRYPTION_FAILED_PLACEHOLDER: Final[str] = "[Decryption failed]"
    # Shown instead of content deleted for everyone
    DELETED_PLACEHOLDER: Final[str] = "This message was deleted"


# =============================================================================
# Conversation Configuration
# =============================================================================


class CONVERSATION_CONFIG:
    """Membership rules for conversations."""

    # Creator plus at least two others
    MIN_GROUP_PARTICIPANTS: Final[int] = 3
    MAX_TITLE_LENGTH: Final[int] = 100


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    MAX_EMOJI_LENGTH: Final[int] = 32


# =============================================================================
# Real-time Configuration
# =============================================================================


class REALTIME_CONFIG:
    """Configuration for WebSocket connections and fan-out."""

    # Close code sent when the bearer credential is missing or invalid
    CLOSE_UNAUTHENTICATED: Final[int] = 4001

    # Broadcast scope name prefixes
    CONVERSATION_SCOPE_PREFIX: Final[str] = "conversation"
    PERSONAL_SCOPE_PREFIX: Final[str] = "user"

    # Channel layer message type delivered to ChatConsumer.chat_event()
    EVENT_MESSAGE_TYPE: Final[str] = "chat.event"
