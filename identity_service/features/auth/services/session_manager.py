from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from identity_service.features.auth.exceptions import InvalidRefreshTokenError
from identity_service.features.auth.models import AccountType, RefreshToken, User
from identity_service.features.auth.services.credential_store import CredentialStore
from identity_service.features.auth.services.token_issuer import AccessClaims, TokenIssuer
from identity_service.features.auth.utils.security import generate_refresh_token
from identity_service.platform.config import settings
from identity_service.platform.logger import get_logger
from identity_service.platform.utils.time import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


class SessionManager:
    """
    Store-backed refresh tokens: issue, validate, rotate and revoke.

    Rotation is use-then-revoke-then-issue, so a refresh token is single-use.
    Nothing here commits, with one exception: a token presented for a
    missing or inactive account stays revoked even though rotation fails.
    """

    def __init__(
        self,
        store: CredentialStore,
        issuer: TokenIssuer,
        refresh_ttl: Optional[timedelta] = None,
    ):
        self.store = store
        self.issuer = issuer
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    async def issue(self, user: User) -> RefreshToken:
        refresh_token = RefreshToken(
            token=generate_refresh_token(),
            user_id=user.id,
            expires_at=utcnow() + self.refresh_ttl,
            revoked=False,
        )
        await self.store.add(refresh_token)
        return refresh_token

    async def issue_pair(self, user: User) -> TokenPair:
        access_token = await self.access_token_for(user)
        refresh_token = await self.issue(user)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token.token,
            expires_in=self.issuer.expires_in,
        )

    async def access_token_for(self, user: User) -> str:
        creator_profile_id = None
        if user.account_type == AccountType.CREATOR:
            profile = await self.store.get_creator_profile(user.id)
            creator_profile_id = profile.id if profile else None

        return self.issuer.issue(
            AccessClaims(
                user_id=user.id,
                email=user.email,
                account_type=AccountType(user.account_type).value,
                creator_profile_id=creator_profile_id,
            )
        )

    async def validate(self, token: str) -> RefreshToken:
        # Absent, revoked and expired all look the same to the caller
        refresh_token = await self.store.get_refresh_token(token) if token else None
        if refresh_token is None or not refresh_token.is_valid(utcnow()):
            raise InvalidRefreshTokenError()
        return refresh_token

    async def rotate(self, token: str) -> TokenPair:
        if not token:
            raise InvalidRefreshTokenError()

        # Revoking first, conditionally, is what makes a replayed or raced token lose
        user_id = await self.store.consume_refresh_token(token, utcnow())
        if user_id is None:
            await self.store.rollback()
            logger.warning("Refresh rejected: token unknown, expired, revoked or already rotated")
            raise InvalidRefreshTokenError()

        user = await self.store.get_user_by_id(user_id)
        if user is None or not user.is_active:
            await self.store.commit()
            logger.warning(f"Refresh rejected: account {user_id} is missing or inactive")
            raise InvalidRefreshTokenError()

        pair = await self.issue_pair(user)
        logger.info(f"Refresh token rotated for user {user_id}")
        return pair

    async def revoke(self, token: str) -> None:
        if not token:
            return
        await self.store.revoke_refresh_token(token)

    async def revoke_all(self, user_id: str) -> int:
        revoked = await self.store.revoke_all_refresh_tokens(user_id)
        logger.info(f"Revoked {revoked} refresh token(s) for user {user_id}")
        return revoked

    async def purge_expired(self) -> int:
        return await self.store.delete_expired_refresh_tokens(utcnow())
