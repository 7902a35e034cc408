"""
Authenticated encryption for individual string fields at rest.

Ciphertext layout is ``base64(nonce || ciphertext || tag)`` with a 12 byte
random nonce and AES-128-GCM. The key is the first 16 bytes of the SHA-256
digest of the configured secret.
"""
import base64
import binascii
import hashlib
import secrets
from functools import lru_cache
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from identity_service.platform.config import settings

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 16


class DecryptionError(ValueError):
    """Ciphertext is malformed or failed authentication."""


class FieldCipher:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Field encryption secret is not configured")
        key = hashlib.sha256(secret.encode("utf-8")).digest()[:KEY_SIZE]
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext:
            return plaintext

        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        if not ciphertext:
            return ciphertext

        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Ciphertext is not valid base64") from e

        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionError("Ciphertext is too short")

        try:
            plaintext = self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
        except InvalidTag as e:
            raise DecryptionError("Ciphertext failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted field is not valid UTF-8") from e


@lru_cache(maxsize=1)
def get_field_cipher() -> FieldCipher:
    return FieldCipher(settings.ENCRYPTION_SECRET_KEY)
