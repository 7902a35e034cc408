import hmac
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.features.auth.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AlreadyCreatorError,
    CreatorProfileNotFoundError,
    EmailAlreadyExistsError,
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    FederatedLoginDisabledError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidExternalTokenError,
    InvalidNewPasswordError,
    InvalidPasswordResetTokenError,
    InvalidVerificationTokenError,
)
from identity_service.features.auth.models import AccountType, CreatorProfile, User
from identity_service.features.auth.schemas.auth import SignupRequest
from identity_service.features.auth.services.credential_store import (
    CredentialStore,
    SqlCredentialStore,
    normalize_email,
)
from identity_service.features.auth.services.notifications import (
    BestEffortNotifier,
    EmailNotifier,
)
from identity_service.features.auth.services.session_manager import SessionManager, TokenPair
from identity_service.features.auth.services.token_issuer import TokenIssuer
from identity_service.features.auth.utils.oauth import ExternalIdentity, GoogleIdentityVerifier
from identity_service.features.auth.utils.security import (
    burn_password_check,
    generate_recovery_code,
    generate_verification_token,
    hash_password,
    verify_password,
)
from identity_service.platform.config import settings
from identity_service.platform.logger import get_logger
from identity_service.platform.utils.time import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


def split_display_name(name: Optional[str], fallback: str) -> Tuple[str, str]:
    """Split on the first whitespace run; a single word becomes the first name."""
    parts = (name or "").strip().split(None, 1)
    if not parts:
        return fallback, ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


class AuthService:
    """
    Account lifecycle: registration, verification, password and Google login,
    session refresh and logout, password recovery and change, profile edits,
    deactivation and conversion to or from a creator account.

    Every public method is one unit of work and commits at most once.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        store: Optional[CredentialStore] = None,
        sessions: Optional[SessionManager] = None,
        notifier: Optional[BestEffortNotifier] = None,
        identity_verifier: Optional[GoogleIdentityVerifier] = None,
    ):
        self.db = db
        self.store = store or SqlCredentialStore(db)
        self.sessions = sessions or SessionManager(self.store, TokenIssuer.from_settings())
        self.notifier = notifier or BestEffortNotifier(EmailNotifier())
        self.identity_verifier = identity_verifier or GoogleIdentityVerifier.from_settings()
        self.verification_ttl = timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS)
        self.recovery_ttl = timedelta(minutes=settings.RECOVERY_CODE_EXPIRE_MINUTES)
        self.recovery_max_attempts = settings.RECOVERY_CODE_MAX_ATTEMPTS

    # ── Registration & verification ─────────────

    async def register(self, request: SignupRequest) -> User:
        email = normalize_email(request.email)
        if await self.store.get_user_by_email(email):
            raise EmailAlreadyExistsError()

        token = generate_verification_token()
        user = User(
            email=email,
            password_hash=hash_password(request.password),
            first_name=request.first_name,
            last_name=request.last_name,
            account_type=request.account_type,
            is_active=True,
            is_email_verified=False,
            allows_federated_login=False,
            verification_token=token,
            verification_token_expires_at=utcnow() + self.verification_ttl,
        )

        try:
            await self.store.add(user)
            if request.account_type == AccountType.CREATOR:
                display_name = request.display_name or " ".join(
                    part for part in (request.first_name, request.last_name) if part
                )
                await self.store.add(CreatorProfile(user_id=user.id, display_name=display_name))
            await self.store.commit()
        except IntegrityError:
            # Lost a race with a concurrent sign-up for the same email
            await self.store.rollback()
            raise EmailAlreadyExistsError()

        logger.info(f"User registered: {user.id} ({user.account_type.value})")
        await self.notifier.send_verification(user, token)
        return user

    async def verify_email(self, token: str) -> User:
        user = await self.store.get_user_by_verification_token(token) if token else None
        if user is None:
            raise InvalidVerificationTokenError()

        if user.is_email_verified:
            return user

        if user.verification_token_expires_at is None or user.verification_token_expires_at <= utcnow():
            logger.info(f"Expired verification token used for user {user.id}")
            raise InvalidVerificationTokenError()

        user.is_email_verified = True
        user.email_verified_at = utcnow()
        user.verification_token = None
        user.verification_token_expires_at = None
        await self.store.commit()

        logger.info(f"Email verified for user {user.id}")
        return user

    async def resend_verification(self, email: str) -> None:
        user = await self.store.get_user_by_email(email)
        if user is None:
            raise AccountNotFoundError()
        if user.is_email_verified:
            raise EmailAlreadyVerifiedError()

        token = generate_verification_token()
        user.verification_token = token
        user.verification_token_expires_at = utcnow() + self.verification_ttl
        await self.store.commit()

        logger.info(f"Verification token reissued for user {user.id}")
        await self.notifier.send_verification(user, token)

    # ── Login ───────────────────────────────────

    async def login(self, email: str, password: str) -> AuthResult:
        user = await self.store.get_user_by_email(email)

        # Unknown email, federated-only account and wrong password are indistinguishable
        if user is None or not user.password_hash:
            burn_password_check(password)
            logger.info("Login failed: invalid credentials")
            raise InvalidCredentialsError()
        if not verify_password(password, user.password_hash):
            logger.info(f"Login failed for user {user.id}: invalid credentials")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info(f"Login refused for inactive user {user.id}")
            raise AccountInactiveError()
        if not user.is_email_verified:
            logger.info(f"Login refused for unverified user {user.id}")
            raise EmailNotVerifiedError()

        return await self._start_session(user)

    async def login_with_google(self, id_token: str) -> AuthResult:
        identity = await self.identity_verifier.verify(id_token)

        user = await self._find_federated_account(identity)
        if user is None:
            try:
                user = await self._provision_federated_user(identity)
            except IntegrityError:
                # A concurrent first sign-in created the account after our lookup
                await self.store.rollback()
                user = await self._find_federated_account(identity)
                if user is None:
                    raise
                logger.info(f"Google sign-in for {identity.subject_id} joined a concurrent provisioning")
                self._link_federated_identity(user, identity)
        else:
            self._link_federated_identity(user, identity)

        return await self._start_session(user)

    async def _find_federated_account(self, identity: ExternalIdentity) -> Optional[User]:
        user = await self.store.get_user_by_external_subject(identity.subject_id)
        if user is None:
            user = await self.store.get_user_by_email(identity.email)
        return user

    def _link_federated_identity(self, user: User, identity: ExternalIdentity) -> None:
        if not user.allows_federated_login:
            logger.info(f"Google login refused for user {user.id}: federated login disabled")
            raise FederatedLoginDisabledError()
        if not user.is_active:
            logger.info(f"Google login refused for inactive user {user.id}")
            raise AccountInactiveError()

        if user.external_subject_id is None:
            user.external_subject_id = identity.subject_id
            logger.info(f"Linked Google identity to user {user.id}")
        elif user.external_subject_id != identity.subject_id:
            logger.warning(f"Google login refused for user {user.id}: linked to a different Google account")
            raise InvalidExternalTokenError()

        # The provider vouches for the address, which is what our own link would prove
        if not user.is_email_verified:
            user.is_email_verified = True
            user.email_verified_at = utcnow()
            user.verification_token = None
            user.verification_token_expires_at = None

        if identity.picture and identity.picture != user.profile_picture_url:
            user.profile_picture_url = identity.picture

    async def _provision_federated_user(self, identity: ExternalIdentity) -> User:
        email = normalize_email(identity.email)
        first_name, last_name = split_display_name(identity.display_name, fallback=email.split("@")[0])
        user = User(
            email=email,
            password_hash=None,
            first_name=first_name,
            last_name=last_name,
            account_type=AccountType.STANDARD,
            profile_picture_url=identity.picture,
            is_active=True,
            is_email_verified=True,
            email_verified_at=utcnow(),
            external_subject_id=identity.subject_id,
            allows_federated_login=True,
        )
        await self.store.add(user)
        logger.info(f"Provisioned user {user.id} from Google sign-in")
        return user

    async def _start_session(self, user: User) -> AuthResult:
        user.last_login = utcnow()
        tokens = await self.sessions.issue_pair(user)
        await self.store.commit()
        logger.info(f"Session started for user {user.id}")
        return AuthResult(user=user, tokens=tokens)

    # ── Sessions ────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        tokens = await self.sessions.rotate(refresh_token)
        await self.store.commit()
        return tokens

    async def logout(self, refresh_token: str) -> None:
        await self.sessions.revoke(refresh_token)
        await self.store.commit()

    async def logout_all(self, user_id: str) -> int:
        revoked = await self.sessions.revoke_all(user_id)
        await self.store.commit()
        return revoked

    # ── Password recovery & change ──────────────

    async def request_password_recovery(self, email: str) -> None:
        """Always returns normally; only active accounts actually get a code."""
        user = await self.store.get_user_by_email(email)
        if user is None or not user.is_active:
            logger.info("Password recovery requested for unknown or inactive account")
            return

        code = generate_recovery_code()
        user.recovery_code = code
        user.recovery_code_expires_at = utcnow() + self.recovery_ttl
        user.recovery_attempts = 0
        await self.store.commit()

        logger.info(f"Password recovery code issued for user {user.id}")
        await self.notifier.send_recovery_code(user, code)

    async def confirm_password_recovery(self, email: str, code: str, new_password: str) -> None:
        user = await self.store.get_user_by_email(email)
        if user is None or not user.recovery_code:
            raise InvalidPasswordResetTokenError()
        if not hmac.compare_digest(user.recovery_code.encode(), (code or "").encode()):
            await self._record_failed_recovery_attempt(user)
            raise InvalidPasswordResetTokenError()
        if user.recovery_code_expires_at is None or user.recovery_code_expires_at <= utcnow():
            logger.info(f"Expired recovery code submitted for user {user.id}")
            raise InvalidPasswordResetTokenError()
        if not user.is_active:
            raise AccountInactiveError()

        user.password_hash = hash_password(new_password)
        user.recovery_code = None
        user.recovery_code_expires_at = None
        user.recovery_attempts = 0
        await self.sessions.revoke_all(user.id)
        await self.store.commit()

        logger.info(f"Password reset completed for user {user.id}")
        await self.notifier.send_password_changed(user)

    async def _record_failed_recovery_attempt(self, user: User) -> None:
        user.recovery_attempts = (user.recovery_attempts or 0) + 1
        if user.recovery_attempts >= self.recovery_max_attempts:
            # Burn the code; the owner has to request a new one
            user.recovery_code = None
            user.recovery_code_expires_at = None
            user.recovery_attempts = 0
            logger.warning(f"Recovery code for user {user.id} discarded after too many wrong attempts")
        else:
            logger.info(f"Wrong recovery code submitted for user {user.id}")
        await self.store.commit()

    async def change_password(
        self, user_id: str, caller_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self._owned_active_account(user_id, caller_id, "change the password of")
        if not user.password_hash or not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")
        if verify_password(new_password, user.password_hash):
            raise InvalidNewPasswordError()

        user.password_hash = hash_password(new_password)
        await self.sessions.revoke_all(user.id)
        await self.store.commit()

        logger.info(f"Password changed for user {user.id}")
        await self.notifier.send_password_changed(user)

    # ── Account management ──────────────────────

    async def _owned_active_account(self, user_id: str, caller_id: str, action: str) -> User:
        if user_id != caller_id:
            logger.warning(f"User {caller_id} attempted to {action} user {user_id}")
            raise ForbiddenError()

        user = await self.store.get_user_by_id(user_id)
        if user is None:
            raise AccountNotFoundError()
        if not user.is_active:
            raise AccountInactiveError()
        return user

    async def update_profile(self, user_id: str, caller_id: str, changes: Dict[str, Any]) -> User:
        user = await self._owned_active_account(user_id, caller_id, "edit the profile of")

        for field in ("first_name", "last_name", "profile_picture_url"):
            if field in changes:
                setattr(user, field, changes[field])
        await self.store.commit()

        logger.info(f"Profile updated for user {user.id}: {sorted(changes)}")
        return user

    async def deactivate_account(self, user_id: str, caller_id: str) -> None:
        """Close the account: every session ends and stored payment details go with it."""
        user = await self._owned_active_account(user_id, caller_id, "deactivate")

        revoked = await self.sessions.revoke_all(user.id)
        removed = await self.store.delete_payment_methods(user.id)
        user.is_active = False
        await self.store.commit()

        logger.info(
            f"User {user.id} deactivated; {revoked} session(s) revoked, {removed} payment method(s) removed"
        )

    # ── Creator profile ─────────────────────────

    async def convert_to_creator(self, caller_id: str, display_name: str, biography: str = "") -> AuthResult:
        user = await self._owned_active_account(caller_id, caller_id, "convert")
        if user.account_type == AccountType.CREATOR or await self.store.get_creator_profile(user.id):
            raise AlreadyCreatorError()

        user.account_type = AccountType.CREATOR
        try:
            await self.store.add(
                CreatorProfile(user_id=user.id, display_name=display_name, biography=biography or "")
            )
        except IntegrityError:
            # A concurrent conversion already created the profile
            await self.store.rollback()
            raise AlreadyCreatorError()

        tokens = await self.sessions.issue_pair(user)
        await self.store.commit()

        logger.info(f"User {user.id} converted to a creator account")
        return AuthResult(user=user, tokens=tokens)

    async def renounce_creator_profile(self, caller_id: str) -> AuthResult:
        user = await self._owned_active_account(caller_id, caller_id, "renounce the creator profile of")
        if user.account_type != AccountType.CREATOR:
            raise CreatorProfileNotFoundError()

        await self.store.delete_creator_profile(user.id)
        user.account_type = AccountType.STANDARD
        tokens = await self.sessions.issue_pair(user)
        await self.store.commit()

        logger.info(f"User {user.id} gave up the creator profile")
        return AuthResult(user=user, tokens=tokens)
