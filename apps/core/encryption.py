"""
Encryption utilities for PII data.

Provides AES-256-GCM encryption for account contact numbers.
"""
import base64
import binascii
import logging
import os
from typing import List
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from django.conf import settings

logger = logging.getLogger(__name__)

KEY_HINT = "Generate with: python -c \"import os, base64; print(base64.b64encode(os.urandom(32)).decode())\""


def validate_encryption_key(key_b64: str) -> bytes:
    """
    Validate encryption key strength and return decoded key.

    The key must be valid base64, decode to exactly 32 bytes, and not be a
    weak key (all zeros, a repeating pattern, or fewer than 16 unique bytes).

    Raises:
        ValueError: If key validation fails with specific reason
    """
    if not key_b64:
        raise ValueError(f"Encryption key is required. {KEY_HINT}")

    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Encryption key must be valid base64: {e}. {KEY_HINT}")

    if len(key) != 32:
        raise ValueError(
            f"Encryption key must be exactly 32 bytes (256 bits). "
            f"Current length: {len(key)} bytes. {KEY_HINT}"
        )

    if key == bytes([key[0]]) * 32:
        raise ValueError(f"Encryption key is repeating byte pattern (weak key). {KEY_HINT}")

    for pattern_len in [2, 4, 8]:
        if key == key[:pattern_len] * (32 // pattern_len):
            raise ValueError(
                f"Encryption key is a simple {pattern_len}-byte repeating pattern (weak key). {KEY_HINT}"
            )

    unique_bytes = len(set(key))
    if unique_bytes < 16:
        raise ValueError(
            f"Encryption key has insufficient entropy. "
            f"Found only {unique_bytes} unique bytes, need at least 16. {KEY_HINT}"
        )

    return key


class EncryptionService:
    """
    Service for encrypting and decrypting sensitive data.

    Supports key rotation by maintaining multiple keys:
    - Current key (ENCRYPTION_KEY): Used for all new encryptions
    - Old keys (ENCRYPTION_OLD_KEYS): Used for decryption only
    """

    def __init__(self, key_b64: str = None, old_keys: List[str] = None):
        self.key = validate_encryption_key(key_b64 or settings.ENCRYPTION_KEY)
        self.cipher = AESGCM(self.key)

        self.old_ciphers: List[AESGCM] = []
        if old_keys is None:
            old_keys = getattr(settings, 'ENCRYPTION_OLD_KEYS', [])
        for i, old_key_b64 in enumerate(old_keys):
            try:
                self.old_ciphers.append(AESGCM(validate_encryption_key(old_key_b64)))
            except ValueError as e:
                # Old keys are decryption-only; a bad one is skipped.
                logger.warning(f"Invalid old encryption key at index {i}: {e}")

    def encrypt(self, plaintext: str) -> str:
        """Return base64 of nonce + ciphertext."""
        if not plaintext:
            return plaintext

        nonce = os.urandom(12)
        ciphertext = self.cipher.encrypt(nonce, plaintext.encode('utf-8'), None)
        return base64.b64encode(nonce + ciphertext).decode('utf-8')

    def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt data produced by ``encrypt``.

        Tries the current key first, then each old key.

        Raises:
            ValueError: If decryption fails with all available keys
        """
        if not encrypted_data:
            return encrypted_data

        try:
            data = base64.b64decode(encrypted_data)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Decryption failed: {e}")

        nonce, ciphertext = data[:12], data[12:]
        for cipher in [self.cipher, *self.old_ciphers]:
            try:
                return cipher.decrypt(nonce, ciphertext, None).decode('utf-8')
            except (InvalidTag, ValueError):
                continue

        raise ValueError("Decryption failed with all available keys")


_encryption_service = None


def get_encryption_service() -> EncryptionService:
    """Get or create global encryption service instance."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service


def mask_contact(value: str, visible_chars: int = 4) -> str:
    """
    Mask a contact number for display, keeping the last digits.

    Example:
        mask_contact('+254700111222') -> '*********1222'
    """
    if not value or len(value) <= visible_chars:
        return '*' * len(value) if value else ''
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]
