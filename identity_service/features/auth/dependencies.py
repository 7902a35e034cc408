from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.features.auth.exceptions import InvalidAccessTokenError
from identity_service.features.auth.models import User
from identity_service.features.auth.services.auth_service import AuthService
from identity_service.features.auth.services.credential_store import SqlCredentialStore
from identity_service.features.auth.services.notifications import BestEffortNotifier, EmailNotifier
from identity_service.features.auth.services.session_manager import SessionManager
from identity_service.features.auth.services.token_issuer import AccessClaims, TokenIssuer
from identity_service.features.auth.utils.oauth import GoogleIdentityVerifier
from identity_service.platform.db.session import get_db

security = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer.from_settings()


@lru_cache(maxsize=1)
def get_identity_verifier() -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier.from_settings()


def get_notifier() -> BestEffortNotifier:
    return BestEffortNotifier(EmailNotifier())


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    notifier: BestEffortNotifier = Depends(get_notifier),
    identity_verifier: GoogleIdentityVerifier = Depends(get_identity_verifier),
) -> AuthService:
    store = SqlCredentialStore(db)
    return AuthService(
        db,
        store=store,
        sessions=SessionManager(store, issuer),
        notifier=notifier,
        identity_verifier=identity_verifier,
    )


async def get_access_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccessClaims:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise InvalidAccessTokenError("Not authenticated")
    return issuer.decode(credentials.credentials)


async def get_current_user(
    claims: AccessClaims = Depends(get_access_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user.
    """
    user = await SqlCredentialStore(db).get_user_by_id(claims.user_id)
    if user is None or not user.is_active:
        raise InvalidAccessTokenError()
    return user
