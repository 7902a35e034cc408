from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from identity_service.features.auth.exceptions import InvalidAccessTokenError
from identity_service.platform.config import settings

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    email: str
    account_type: str
    creator_profile_id: Optional[str] = None


class TokenIssuer:
    """
    Mints and checks short-lived HMAC-signed access tokens.

    The signing key, algorithm and lifetime are fixed when the issuer is built.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: timedelta = timedelta(minutes=15)):
        if not secret_key:
            raise ValueError("JWT signing key is not configured")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.ttl = ttl

    @classmethod
    def from_settings(cls) -> "TokenIssuer":
        return cls(
            settings.JWT_SECRET_KEY,
            algorithm=settings.ALGORITHM,
            ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    @property
    def expires_in(self) -> int:
        return int(self.ttl.total_seconds())

    def issue(self, claims: AccessClaims, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": claims.user_id,
            "email": claims.email,
            "account_type": claims.account_type,
            "type": ACCESS_TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        if claims.creator_profile_id:
            payload["creator_profile_id"] = claims.creator_profile_id
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> AccessClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidAccessTokenError("Access token has expired")
        except jwt.PyJWTError:
            raise InvalidAccessTokenError()

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidAccessTokenError()

        email = payload.get("email")
        account_type = payload.get("account_type")
        if not isinstance(email, str) or not isinstance(account_type, str):
            raise InvalidAccessTokenError()

        return AccessClaims(
            user_id=payload["sub"],
            email=email,
            account_type=account_type,
            creator_profile_id=payload.get("creator_profile_id"),
        )
