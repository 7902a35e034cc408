"""
Celery Beat maintenance tasks for credentials and accounts.

Each task opens its own engine because ``asyncio.run`` starts a fresh
event loop and pooled async connections cannot cross loops.
"""
import asyncio

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker

from identity_service.features.auth.services.cleanup_service import CleanupService
from identity_service.platform.db.session import build_engine
from identity_service.platform.logger import get_logger

logger = get_logger(__name__)


async def _run(method_name: str):
    engine = build_engine()
    try:
        session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
        async with session_factory() as session:
            return await getattr(CleanupService(session), method_name)()
    finally:
        await engine.dispose()


@shared_task(name="identity_service.features.auth.workers.cleanup_tasks.purge_expired_refresh_tokens")
def purge_expired_refresh_tokens():
    """Nightly: physically delete refresh tokens past their expiry."""
    return asyncio.run(_run("purge_expired_refresh_tokens"))


@shared_task(name="identity_service.features.auth.workers.cleanup_tasks.clear_expired_artifacts")
def clear_expired_artifacts():
    """Daily: drop expired verification tokens and recovery codes."""
    return asyncio.run(_run("clear_expired_artifacts"))


@shared_task(name="identity_service.features.auth.workers.cleanup_tasks.deactivate_unverified_accounts")
def deactivate_unverified_accounts():
    return asyncio.run(_run("deactivate_unverified_accounts"))


@shared_task(name="identity_service.features.auth.workers.cleanup_tasks.delete_stale_inactive_accounts")
def delete_stale_inactive_accounts():
    return asyncio.run(_run("delete_stale_inactive_accounts"))
