"""AES-CBC encryption for OAuth tokens stored in walmart_tokens.

The blob format is base64(iv || ciphertext) with a random 16-byte IV and PKCS7
padding, so rows stay readable by the other services sharing the same key.
"""

import base64
import binascii
import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import Settings, get_settings
from .errors import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)

IV_SIZE = 16
BLOCK_SIZE_BITS = 128
VALID_KEY_SIZES = (16, 24, 32)


class TokenCipher:
    """Encrypts and decrypts token strings under a single AES key."""

    def __init__(self, key: bytes):
        if len(key) not in VALID_KEY_SIZES:
            raise ConfigurationError(
                f"Token encryption key must be 16, 24 or 32 bytes, got {len(key)}"
            )
        self._algorithm = algorithms.AES(key)

    @classmethod
    def from_base64_key(cls, encoded_key: str) -> "TokenCipher":
        """Build a cipher from the base64 key format used by TOKEN_ENCRYPTION_KEY."""
        if not encoded_key:
            raise ConfigurationError(
                "Token encryption key not configured. Set TOKEN_ENCRYPTION_KEY."
            )
        try:
            key = base64.b64decode(encoded_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError("TOKEN_ENCRYPTION_KEY is not valid base64") from e
        return cls(key)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TokenCipher":
        settings = settings or get_settings()
        return cls.from_base64_key(settings.token_encryption_key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a token with a fresh IV and return the base64 blob."""
        iv = os.urandom(IV_SIZE)

        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(self._algorithm, modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return base64.b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decrypt a base64 blob produced by encrypt().

        Raises:
            DecryptionError: If the blob is malformed, truncated, or does not
                decrypt to valid UTF-8 under this key.
        """
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecryptionError("Token blob is not valid base64") from e

        if len(raw) < IV_SIZE:
            raise DecryptionError("Token blob is shorter than the initialization vector")

        iv, ciphertext = raw[:IV_SIZE], raw[IV_SIZE:]
        if not ciphertext or len(ciphertext) % IV_SIZE:
            raise DecryptionError("Token ciphertext is empty or not block aligned")

        try:
            decryptor = Cipher(self._algorithm, modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()

            unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except ValueError as e:
            # Bad padding and invalid UTF-8 (UnicodeDecodeError) both land here
            logger.warning("Failed to decrypt token blob")
            raise DecryptionError("Failed to decrypt token") from e
