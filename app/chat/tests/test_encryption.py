"""
Tests for message content encryption.
"""

import pytest

from chat.encryption import MessageCipher, derive_key, get_message_cipher
from core.exceptions import DecryptionError


class TestMessageCipher:
    @pytest.mark.parametrize("plaintext", ["hello", "", "héllo wörld 👋", "x" * 10000])
    def test_decrypt_restores_plaintext(self, plaintext):
        cipher = MessageCipher("secret")

        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_ciphertext_does_not_contain_plaintext(self):
        token = MessageCipher("secret").encrypt("meet at noon")

        assert "meet at noon" not in token

    def test_wrong_key_raises_decryption_error(self):
        token = MessageCipher("secret").encrypt("hello")

        with pytest.raises(DecryptionError) as exc_info:
            MessageCipher("other-secret").decrypt(token)
        assert exc_info.value.error_code == "DECRYPTION_FAILURE"

    def test_garbage_raises_decryption_error(self):
        with pytest.raises(DecryptionError):
            MessageCipher("secret").decrypt("not-a-token")

    def test_non_ascii_garbage_raises_decryption_error(self):
        with pytest.raises(DecryptionError):
            MessageCipher("secret").decrypt("ünïcode")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            MessageCipher("")


class TestDeriveKey:
    def test_same_secret_same_key(self):
        assert derive_key("abc") == derive_key("abc")

    def test_key_is_fernet_sized(self):
        # 32 bytes urlsafe-base64 encoded
        assert len(derive_key("abc")) == 44


class TestProvider:
    def test_uses_configured_secret(self, settings):
        settings.CHAT_ENCRYPTION_KEY = "configured"
        get_message_cipher.cache_clear()

        token = get_message_cipher().encrypt("hi")

        assert MessageCipher("configured").decrypt(token) == "hi"
