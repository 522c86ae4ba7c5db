"""
Model fields for chat storage.

EncryptedTextField keeps message bodies encrypted in the database while
every ORM consumer (services, serializers, admin) works with plaintext.
"""

from django.db import models

from chat.encryption import get_codec


class EncryptedTextField(models.TextField):
    """
    TextField that encrypts on write and decrypts on read.

    Note:
        Lookups against the column compare ciphertext (each write uses a
        fresh IV), so never filter on this field.
    """

    description = "Text encrypted at rest"

    def get_prep_value(self, value):
        value = super().get_prep_value(value)
        if value is None or value == "":
            return value
        return get_codec().encrypt(value)

    def from_db_value(self, value, expression, connection):
        return get_codec().decrypt(value)
