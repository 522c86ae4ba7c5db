"""
Content codec for message bodies at rest.

Message content is stored as "<iv base64>:<ciphertext base64>" using
AES-256-CBC with PKCS7 padding and a fresh 16-byte IV per message. The key
is derived from settings.CHAT_ENCRYPTION_SECRET with scrypt
(salt b"salt", n=16384, r=8, p=1), which keeps rows written by earlier
deployments readable.

decrypt() never raises: values that are not in token form (legacy
plaintext, empty values) and tokens that fail to decrypt are returned
unchanged, so a bad row degrades to showing the raw token instead of
breaking a history read.

Usage:
    from chat.encryption import get_codec

    token = get_codec().encrypt("hello")
    assert get_codec().decrypt(token) == "hello"
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from functools import lru_cache

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

KEY_SALT = b"salt"
KEY_LENGTH = 32
IV_LENGTH = 16
TOKEN_SEPARATOR = ":"


def derive_key(secret: str) -> bytes:
    """Derive the 32-byte AES key from the configured secret."""
    kdf = Scrypt(salt=KEY_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class ContentCodec:
    """
    Encrypts and decrypts message content with a single derived key.

    Stateless apart from the key, so one instance is shared by every
    request and consumer.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ImproperlyConfigured(
                "CHAT_ENCRYPTION_SECRET must be set to store message content."
            )
        self._key = derive_key(secret)

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return (
            base64.b64encode(iv).decode("ascii")
            + TOKEN_SEPARATOR
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def decrypt(self, token):
        """
        Decrypt a stored token.

        Returns the input unchanged when it is not a non-empty string, when
        it does not split into exactly two parts, or when decryption fails.
        """
        if not token or not isinstance(token, str):
            return token

        parts = token.split(TOKEN_SEPARATOR)
        if len(parts) != 2:
            return token

        try:
            iv = base64.b64decode(parts[0], validate=True)
            ciphertext = base64.b64decode(parts[1], validate=True)
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (binascii.Error, ValueError) as e:
            # ValueError covers bad IV length, partial blocks, bad padding
            # and non-UTF-8 output.
            logger.error(f"Message content decryption failed: {e}")
            return token


@lru_cache(maxsize=1)
def get_codec() -> ContentCodec:
    """Return the process-wide codec built from settings."""
    return ContentCodec(getattr(settings, "CHAT_ENCRYPTION_SECRET", ""))
