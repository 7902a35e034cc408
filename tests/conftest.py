"""
Test configuration and fixtures for the Identity Service.

Environment variables are set before anything from ``identity_service`` is
imported, because settings are read once at import time.
"""

import os
import tempfile
from datetime import timedelta
from typing import AsyncGenerator, List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

_test_dir = tempfile.mkdtemp(prefix="identity_service_tests_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_test_dir, 'app.db')}"
os.environ["ENCRYPTION_SECRET_KEY"] = "test-field-encryption-secret"
os.environ["JWT_SECRET_KEY"] = "test-jwt-signing-key-with-enough-length-for-hs256"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id.apps.googleusercontent.com"
os.environ["MAIL_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_DIR"] = os.path.join(_test_dir, "logs")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from identity_service.features.auth.dependencies import (
    get_identity_verifier,
    get_notifier,
)
from identity_service.features.auth.exceptions import InvalidExternalTokenError
from identity_service.features.auth.models import AccountType, RefreshToken, User
from identity_service.features.auth.services.auth_service import AuthService
from identity_service.features.auth.services.notifications import BestEffortNotifier
from identity_service.features.auth.utils.oauth import ExternalIdentity
from identity_service.features.auth.utils.security import hash_password
from identity_service.platform.db.session import get_db, init_models
from identity_service.platform.utils.time import utcnow

DEFAULT_PASSWORD = "Str0ngPassword"


class RecordingNotifier:
    """Blocking notifier that records what would have been sent."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.verifications: List[Tuple[str, str]] = []
        self.recovery_codes: List[Tuple[str, str]] = []
        self.password_changes: List[str] = []

    def _maybe_fail(self):
        if self.fail:
            raise ConnectionError("SMTP server unreachable")

    def send_verification(self, user, token):
        self._maybe_fail()
        self.verifications.append((user.email, token))

    def send_recovery_code(self, user, code):
        self._maybe_fail()
        self.recovery_codes.append((user.email, code))

    def send_password_changed(self, user):
        self._maybe_fail()
        self.password_changes.append(user.email)


class FakeIdentityVerifier:
    """Stands in for Google: returns ``identity`` or raises InvalidExternalTokenError."""

    def __init__(self):
        self.identity: Optional[ExternalIdentity] = None
        self.calls: List[str] = []

    async def verify(self, token: str) -> ExternalIdentity:
        self.calls.append(token)
        if self.identity is None:
            raise InvalidExternalTokenError()
        return self.identity


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so independent sessions really are independent connections."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def identity_verifier() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture
def auth_service(db_session, notifier, identity_verifier) -> AuthService:
    return AuthService(
        db_session,
        notifier=BestEffortNotifier(notifier),
        identity_verifier=identity_verifier,
    )


@pytest.fixture
def make_user(db_session):
    """Insert an account directly, bypassing registration."""

    async def _make_user(
        email: str = "bob@example.com",
        password: Optional[str] = DEFAULT_PASSWORD,
        *,
        is_active: bool = True,
        is_email_verified: bool = True,
        allows_federated_login: bool = False,
        external_subject_id: Optional[str] = None,
        account_type: AccountType = AccountType.STANDARD,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password) if password else None,
            first_name="Bob",
            last_name="Builder",
            account_type=account_type,
            is_active=is_active,
            is_email_verified=is_email_verified,
            allows_federated_login=allows_federated_login,
            external_subject_id=external_subject_id,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_refresh_token(db_session):
    async def _make_refresh_token(
        user: User, token: str, *, revoked: bool = False, expires_in: timedelta = timedelta(days=1)
    ) -> RefreshToken:
        refresh_token = RefreshToken(
            token=token, user_id=user.id, revoked=revoked, expires_at=utcnow() + expires_in
        )
        db_session.add(refresh_token)
        await db_session.commit()
        return refresh_token

    return _make_refresh_token


@pytest_asyncio.fixture
async def client(session_factory, notifier, identity_verifier) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client against the app, wired to the per-test database and fakes."""
    from identity_service.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: BestEffortNotifier(notifier)
    app.dependency_overrides[get_identity_verifier] = lambda: identity_verifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
