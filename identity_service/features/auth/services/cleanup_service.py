from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.features.auth.services.credential_store import SqlCredentialStore
from identity_service.platform.config import settings
from identity_service.platform.logger import get_logger
from identity_service.platform.utils.time import utcnow

logger = get_logger(__name__)


class CleanupService:
    """
    Housekeeping for expired credentials and abandoned accounts.

    Nothing here is needed for correctness: expired tokens and codes are
    already rejected on use. Each method commits its own work.
    """

    def __init__(self, db: AsyncSession):
        self.store = SqlCredentialStore(db)

    async def purge_expired_refresh_tokens(self) -> int:
        deleted = await self.store.delete_expired_refresh_tokens(utcnow())
        await self.store.commit()
        logger.info(f"Deleted {deleted} expired refresh token(s)")
        return deleted

    async def clear_expired_artifacts(self) -> dict:
        now = utcnow()
        verification = await self.store.clear_expired_verification_tokens(now)
        recovery = await self.store.clear_expired_recovery_codes(now)
        await self.store.commit()
        logger.info(f"Cleared {verification} verification token(s) and {recovery} recovery code(s)")
        return {"verification_tokens": verification, "recovery_codes": recovery}

    async def deactivate_unverified_accounts(self, grace_days: int = settings.UNVERIFIED_ACCOUNT_GRACE_DAYS) -> int:
        deactivated = await self.store.deactivate_unverified_users(utcnow() - timedelta(days=grace_days))
        await self.store.commit()
        logger.info(f"Deactivated {deactivated} account(s) unverified for over {grace_days} days")
        return deactivated

    async def delete_stale_inactive_accounts(
        self, retention_days: int = settings.INACTIVE_ACCOUNT_RETENTION_DAYS
    ) -> int:
        users = await self.store.list_stale_inactive_users(utcnow() - timedelta(days=retention_days))
        for user in users:
            # Sessions go first so no live refresh token ever points at a missing account
            await self.store.revoke_all_refresh_tokens(user.id)
            await self.store.delete_user(user)
        await self.store.commit()
        logger.info(f"Deleted {len(users)} account(s) inactive for over {retention_days} days")
        return len(users)
