"""
Symmetric encryption for message content at rest.

Message bodies and captions are encrypted with Fernet (AES-128-CBC with an
HMAC-SHA256 tag) from the cryptography package. The key is derived from
settings.CHAT_ENCRYPTION_KEY so any string secret can be configured; the
same process-wide key encrypts and decrypts.

Usage:
    from chat.encryption import get_message_cipher

    cipher = get_message_cipher()
    token = cipher.encrypt("hello")
    cipher.decrypt(token)  # "hello"

Failures:
    decrypt() raises core.exceptions.DecryptionError for tampered, truncated
    or foreign-key ciphertext. Readers turn that into a placeholder.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings

from core.exceptions import DecryptionError

logger = logging.getLogger(__name__)


def derive_key(secret: str) -> bytes:
    """Turn an arbitrary secret string into a 32-byte urlsafe Fernet key."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class MessageCipher:
    """
    Encrypts and decrypts message text.

    Both directions operate on str. Round-trip holds for every string,
    including the empty string and arbitrary unicode.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Message encryption secret must not be empty")
        self._fernet = Fernet(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a token produced by encrypt().

        Raises:
            DecryptionError: If the token is malformed or fails authentication
        """
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as exc:
            raise DecryptionError(
                "Message content could not be decrypted",
                error_code="DECRYPTION_FAILURE",
            ) from exc


@lru_cache(maxsize=1)
def get_message_cipher() -> MessageCipher:
    """Process-wide cipher built from settings.CHAT_ENCRYPTION_KEY."""
    return MessageCipher(settings.CHAT_ENCRYPTION_KEY)
