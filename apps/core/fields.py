"""
Custom Django model fields for encrypted data.
"""
from django.db import models
from .encryption import get_encryption_service


class EncryptedCharField(models.CharField):
    """
    CharField that automatically encrypts/decrypts data.

    Ciphertext is nondeterministic, so the column cannot be filtered on.
    The encryption service is resolved on first use so that settings are
    loaded before the key is read.
    """

    description = "Encrypted character field"

    @property
    def encryption_service(self):
        return get_encryption_service()

    def get_prep_value(self, value):
        """Encrypt value before saving to database."""
        value = super().get_prep_value(value)
        if value is None or value == '':
            return value
        return self.encryption_service.encrypt(value)

    def from_db_value(self, value, expression, connection):
        """Decrypt value when loading from database."""
        if value is None or value == '':
            return value
        try:
            return self.encryption_service.decrypt(value)
        except ValueError:
            # Never expose ciphertext
            return None

    def to_python(self, value):
        if isinstance(value, str) or value is None:
            return value
        return str(value)
