"""
Account notifications (verification, recovery code, password changed).

Delivery is fire-and-forget: ``BestEffortNotifier`` guarantees that a
failing transport never fails the account operation that triggered it.
"""
import asyncio
from typing import Protocol
from urllib.parse import urlencode

from identity_service.features.auth.models import User
from identity_service.platform.config import settings
from identity_service.platform.logger import get_logger
from identity_service.platform.services.email import render_template, send_email

logger = get_logger(__name__)


class AccountNotifier(Protocol):
    def send_verification(self, user: User, token: str) -> None: ...

    def send_recovery_code(self, user: User, code: str) -> None: ...

    def send_password_changed(self, user: User) -> None: ...


class EmailNotifier:
    """Renders the auth templates and hands them to the platform mailer."""

    def send_verification(self, user: User, token: str) -> None:
        verification_url = f"{settings.FRONTEND_URL.rstrip('/')}/verify-email?{urlencode({'token': token})}"
        html_content = render_template(
            "verify_email.html",
            first_name=user.first_name or "there",
            verification_url=verification_url,
            expiration_hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS,
        )
        send_email(user.email, f"Verify Your Email - {settings.APP_NAME}", html_content)

    def send_recovery_code(self, user: User, code: str) -> None:
        html_content = render_template(
            "recovery_code.html",
            first_name=user.first_name or "there",
            recovery_code=code,
            expiration_minutes=settings.RECOVERY_CODE_EXPIRE_MINUTES,
        )
        send_email(user.email, f"Reset Your Password - {settings.APP_NAME}", html_content)

    def send_password_changed(self, user: User) -> None:
        html_content = render_template("password_changed.html", first_name=user.first_name or "there")
        send_email(user.email, f"Your Password Was Changed - {settings.APP_NAME}", html_content)


class NullNotifier:
    def send_verification(self, user: User, token: str) -> None:
        pass

    def send_recovery_code(self, user: User, code: str) -> None:
        pass

    def send_password_changed(self, user: User) -> None:
        pass


class BestEffortNotifier:
    """
    Async facade over a blocking notifier.

    Each send runs in a worker thread; any exception is logged with its
    traceback and dropped.
    """

    def __init__(self, notifier: AccountNotifier):
        self.notifier = notifier

    async def send_verification(self, user: User, token: str) -> bool:
        return await self._deliver("verification", self.notifier.send_verification, user, token)

    async def send_recovery_code(self, user: User, code: str) -> bool:
        return await self._deliver("recovery code", self.notifier.send_recovery_code, user, code)

    async def send_password_changed(self, user: User) -> bool:
        return await self._deliver("password changed", self.notifier.send_password_changed, user)

    async def _deliver(self, kind: str, send, user: User, *args) -> bool:
        try:
            await asyncio.to_thread(send, user, *args)
        except Exception:
            logger.exception(f"Failed to send {kind} email to user {user.id}")
            return False
        return True
