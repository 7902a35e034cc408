from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from identity_service.platform.services.field_cipher import get_field_cipher


class EncryptedString(TypeDecorator):
    """String column stored as field-cipher ciphertext; None and "" pass through."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return get_field_cipher().encrypt(value)

    def process_result_value(self, value, dialect):
        return get_field_cipher().decrypt(value)
