"""
Persistence contract for accounts, refresh tokens and the artefacts embedded in accounts.

The orchestrator and session manager only talk to ``CredentialStore``; the SQL
implementation wraps a single ``AsyncSession`` so one store instance equals one
unit of work, committed explicitly by the caller.
"""
from datetime import datetime
from typing import List, Optional, Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.features.auth.models import CreatorProfile, RefreshToken, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore(Protocol):
    async def get_user_by_id(self, user_id: str) -> Optional[User]: ...

    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    async def get_user_by_external_subject(self, subject_id: str) -> Optional[User]: ...

    async def get_user_by_verification_token(self, token: str) -> Optional[User]: ...

    async def get_creator_profile(self, user_id: str) -> Optional[CreatorProfile]: ...

    async def add(self, instance) -> None: ...

    async def delete_user(self, user: User) -> None: ...

    async def delete_creator_profile(self, user_id: str) -> int: ...

    async def delete_payment_methods(self, user_id: str) -> int: ...

    async def get_refresh_token(self, token: str) -> Optional[RefreshToken]: ...

    async def list_refresh_tokens(self, user_id: str) -> List[RefreshToken]: ...

    async def consume_refresh_token(self, token: str, now: datetime) -> Optional[str]: ...

    async def revoke_refresh_token(self, token: str) -> int: ...

    async def revoke_all_refresh_tokens(self, user_id: str) -> int: ...

    async def delete_expired_refresh_tokens(self, now: datetime) -> int: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlCredentialStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Accounts ────────────────────────────────

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_user_by_external_subject(self, subject_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.external_subject_id == subject_id))
        return result.scalar_one_or_none()

    async def get_user_by_verification_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.verification_token == token))
        return result.scalar_one_or_none()

    async def get_creator_profile(self, user_id: str) -> Optional[CreatorProfile]:
        result = await self.db.execute(select(CreatorProfile).where(CreatorProfile.user_id == user_id))
        return result.scalar_one_or_none()

    async def add(self, instance) -> None:
        self.db.add(instance)
        await self.db.flush()

    async def delete_user(self, user: User) -> None:
        """Remove an account together with everything that references it."""
        # Imported here: payments depends on auth, not the other way round
        from identity_service.features.payments.models import PaymentMethod

        await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
        await self.db.execute(delete(PaymentMethod).where(PaymentMethod.user_id == user.id))
        await self.db.execute(delete(CreatorProfile).where(CreatorProfile.user_id == user.id))
        await self.db.delete(user)
        await self.db.flush()

    async def delete_creator_profile(self, user_id: str) -> int:
        result = await self.db.execute(
            delete(CreatorProfile)
            .where(CreatorProfile.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def delete_payment_methods(self, user_id: str) -> int:
        from identity_service.features.payments.models import PaymentMethod

        result = await self.db.execute(
            delete(PaymentMethod)
            .where(PaymentMethod.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    # ── Refresh tokens ──────────────────────────

    async def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token == token))
        return result.scalar_one_or_none()

    async def list_refresh_tokens(self, user_id: str) -> List[RefreshToken]:
        result = await self.db.execute(
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.desc())
        )
        return list(result.scalars().all())

    async def consume_refresh_token(self, token: str, now: datetime) -> Optional[str]:
        """
        Revoke ``token`` only if it is still valid and return its owner's id.

        This is a single conditional UPDATE so two concurrent callers can never
        both see the token as live: the database serialises the writes and only
        one of them changes a row. It must be the first statement of its
        transaction, otherwise SQLite may refuse to upgrade the read lock.
        """
        result = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(revoked=True, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        owner = await self.db.execute(select(RefreshToken.user_id).where(RefreshToken.token == token))
        return owner.scalar_one()

    async def revoke_refresh_token(self, token: str) -> int:
        result = await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def revoke_all_refresh_tokens(self, user_id: str) -> int:
        result = await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_expired_refresh_tokens(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ── Maintenance ─────────────────────────────

    async def clear_expired_verification_tokens(self, now: datetime) -> int:
        result = await self.db.execute(
            update(User)
            .where(User.verification_token.is_not(None), User.verification_token_expires_at <= now)
            .values(verification_token=None, verification_token_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def clear_expired_recovery_codes(self, now: datetime) -> int:
        result = await self.db.execute(
            update(User)
            .where(User.recovery_code_expires_at.is_not(None), User.recovery_code_expires_at <= now)
            .values(recovery_code=None, recovery_code_expires_at=None, recovery_attempts=0)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def deactivate_unverified_users(self, created_before: datetime) -> int:
        # Federated accounts are verified on creation; only password sign-ups can linger
        result = await self.db.execute(
            update(User)
            .where(
                User.is_active.is_(True),
                User.is_email_verified.is_(False),
                User.external_subject_id.is_(None),
                User.created_at < created_before,
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_stale_inactive_users(self, updated_before: datetime) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.is_active.is_(False), User.updated_at < updated_before)
        )
        return list(result.scalars().all())

    # ── Unit of work ────────────────────────────

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
