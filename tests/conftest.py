"""Pytest configuration and fixtures."""

import os
import sys
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from uuid import uuid4

# Disable rate limiting in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import TokenUser
from infrastructure.database.models import Base, ProfileModel


# Compile JSONB as JSON for SQLite (used in tests)
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_: Any, compiler: Any, **kw: Any) -> str:
    return "JSON"


# Fixed test user IDs for consistency
TEST_ADMIN_ID = uuid4()
TEST_USER_ID = uuid4()


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine per test.

    Background notification tasks open their own sessions, so the database
    must be shared across connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> Callable[[], Any]:
    from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    return factory


@pytest.fixture
def admin_user() -> TokenUser:
    """An admin with a stored profile."""
    return TokenUser(
        id=TEST_ADMIN_ID,
        email="admin@example.com",
        display_name="admin",
        role="superAdmin",
    )


@pytest.fixture
def test_user() -> TokenUser:
    """A plain user with a stored profile."""
    return TokenUser(
        id=TEST_USER_ID,
        email="test@example.com",
        display_name="Test User",
        role="user",
    )


@pytest.fixture
async def seeded_profiles(
    session_factory: async_sessionmaker[AsyncSession],
    admin_user: TokenUser,
    test_user: TokenUser,
) -> None:
    """Store profiles for the admin and the plain test user."""
    async with session_factory() as session:
        for user in (admin_user, test_user):
            session.add(
                ProfileModel(
                    id=user.id,
                    email=user.email,
                    username=user.display_name,
                    role=user.role,
                )
            )
        await session.commit()


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    """Create auth provider for testing."""
    return JWTAuthProvider(
        secret_key="test-secret-key",
        algorithm="HS256",
        expire_minutes=30,
    )


@pytest.fixture
def auth_token(auth_provider: JWTAuthProvider, admin_user: TokenUser) -> str:
    """Create auth token for the admin user."""
    return str(auth_provider.create_token(admin_user))


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def user_headers(auth_provider: JWTAuthProvider, test_user: TokenUser) -> dict[str, str]:
    """Authorization headers for the non-admin user."""
    return {"Authorization": f"Bearer {auth_provider.create_token(test_user)}"}


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (no auth)."""
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def mail_outbox() -> Any:
    from infrastructure.mail import ConsoleMailSender

    return ConsoleMailSender(mail_from="no-reply@test.local")


@pytest.fixture
def notification_dispatcher(uow_factory: Callable[[], Any], mail_outbox: Any) -> Any:
    from domain.services.history_recorder import HistoryRecorder
    from domain.services.notification_dispatcher import NotificationDispatcher
    from domain.services.notification_templates import NotificationTemplates

    return NotificationDispatcher(
        uow_factory,
        mail_sender=mail_outbox,
        templates=NotificationTemplates(frontend_url="http://frontend.test"),
        history_recorder=HistoryRecorder(uow_factory),
    )


@pytest.fixture
async def authenticated_client(
    uow_factory: Callable[[], Any],
    seeded_profiles: None,
    auth_provider: JWTAuthProvider,
    mail_outbox: Any,
    notification_dispatcher: Any,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client with database, mail and auth overrides.

    This client:
    - Uses a per-test SQLite database with admin and user profiles
    - Validates real tokens signed with the test secret
    - Sends mail into an in-memory outbox
    - Waits for background notifications before the database goes away
    """
    from api.dependencies.auth import get_auth_provider
    from api.v1.dependencies import (
        get_activity_service,
        get_digest_scheduler,
        get_notification_dispatcher,
        get_notification_settings_service,
    )
    from domain.services.activity_service import ActivityService
    from domain.services.digest_scheduler import DigestScheduler
    from domain.services.history_recorder import HistoryRecorder
    from domain.services.notification_settings_service import NotificationSettingsService
    from domain.services.notification_templates import NotificationTemplates
    from main import create_app

    app = create_app()

    activity_service = ActivityService(uow_factory, dispatcher=notification_dispatcher)
    scheduler = DigestScheduler(
        uow_factory,
        mail_sender=mail_outbox,
        templates=NotificationTemplates(frontend_url="http://frontend.test"),
        history_recorder=HistoryRecorder(uow_factory),
    )

    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_activity_service] = lambda: activity_service
    app.dependency_overrides[get_notification_settings_service] = (
        lambda: NotificationSettingsService(uow_factory)
    )
    app.dependency_overrides[get_notification_dispatcher] = lambda: notification_dispatcher
    app.dependency_overrides[get_digest_scheduler] = lambda: scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    await notification_dispatcher.drain()
    app.dependency_overrides.clear()
