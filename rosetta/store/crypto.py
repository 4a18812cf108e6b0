"""
Field-Level Encryption — authenticated encryption for sensitive text columns.

Document titles and descriptions and metadata authorization references are
stored as ciphertext. The cipher is an explicit object constructed at
startup and handed to the record service; there is no module-level key.

Wire format of a stored value:

    base64( nonce[12] || AES-256-GCM(plaintext) || tag[16] )

A fresh random nonce is drawn for every value, so equal plaintexts never
produce equal ciphertexts.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from rosetta.errors import FieldDecryptionError

logger = logging.getLogger(__name__)

KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # GCM standard nonce

DEVELOPMENT_KEY = base64.b64encode(bytes(KEY_SIZE)).decode("ascii")


class FieldCipher:
    """AES-256-GCM codec for individual text fields."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_base64_key(cls, key_b64: str) -> FieldCipher:
        try:
            key = base64.b64decode(key_b64.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise ValueError("Encryption key is not valid base64") from exc
        return cls(key)

    @classmethod
    def from_settings(cls, settings) -> FieldCipher:
        if settings.encryption_master_key == DEVELOPMENT_KEY:
            logger.warning(
                "Using the development encryption key. Set ENCRYPTION_MASTER_KEY in production!"
            )
        return cls.from_base64_key(settings.encryption_master_key)

    @staticmethod
    def generate_key() -> str:
        """Return a new random key, base64 encoded, suitable for settings."""
        return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        Decrypt a stored value.

        Raises:
            FieldDecryptionError: The value is not base64, is too short, fails
                authentication (tampered or wrong key), or is not UTF-8.
        """
        try:
            combined = base64.b64decode(token.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise FieldDecryptionError(f"Base64 decode failed: {exc}") from exc

        if len(combined) <= NONCE_SIZE:
            raise FieldDecryptionError("Ciphertext too short")

        nonce, sealed = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            raise FieldDecryptionError("Decryption failed: authentication tag mismatch") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FieldDecryptionError(f"UTF-8 decode failed: {exc}") from exc

    def encrypt_optional(self, plaintext: str | None) -> str | None:
        return None if plaintext is None else self.encrypt(plaintext)

    def decrypt_optional(self, token: str | None) -> str | None:
        return None if token is None else self.decrypt(token)
