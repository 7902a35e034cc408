import hashlib
import secrets
from functools import lru_cache

import bcrypt


def hash_password(password: str) -> str:
    # SHA-256 first so passwords past bcrypt's 72 byte limit still count in full
    password_hash = hashlib.sha256(password.encode('utf-8')).digest()

    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_hash, salt)

    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.
    Uses SHA-256 pre-hashing to match the hashing method.
    """
    password_hash = hashlib.sha256(plain_password.encode('utf-8')).digest()
    return bcrypt.checkpw(password_hash, hashed_password.encode('utf-8'))


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


def burn_password_check(plain_password: str) -> None:
    """Spend one bcrypt round so unknown emails take as long as wrong passwords."""
    verify_password(plain_password, _decoy_hash())


def generate_verification_token() -> str:
    """Generate a secure random token for email verification"""
    return secrets.token_urlsafe(32)


def generate_refresh_token() -> str:
    """Opaque refresh token, unrelated to any account data"""
    return secrets.token_urlsafe(48)


def generate_recovery_code() -> str:
    """Generate a 6-digit numeric password recovery code"""
    return ''.join([str(secrets.randbelow(10)) for _ in range(6)])
