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
from sqlalchemy.pool import StaticPool

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities.identity import Identity
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.database.models import Base


# Compile JSONB as JSON for SQLite (used in tests)
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_: Any, compiler: Any, **kw: Any) -> str:
    return "JSON"


# Test database URL (SQLite in memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingSender:
    """Notification sender that keeps every message in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def send(self, email: str, template: str, data: dict[str, Any]) -> bool:
        self.sent.append((email, template, data))
        return True


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test, tables created up front."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def test_user() -> Identity:
    """The default caller in API tests."""
    return Identity(
        id=uuid4(),
        email="test@example.com",
        display_name="Test User",
    )


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    """Create auth provider for testing."""
    return JWTAuthProvider(
        secret_key="test-secret-key",
        algorithm="HS256",
        expire_minutes=30,
        audience=None,
    )


@pytest.fixture
def headers_for(auth_provider: JWTAuthProvider) -> Callable[[Identity], dict[str, str]]:
    """Build authorization headers for any identity."""

    def build(identity: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {auth_provider.create_token(identity)}"}

    return build


@pytest.fixture
def auth_headers(
    headers_for: Callable[[Identity], dict[str, str]], test_user: Identity
) -> dict[str, str]:
    """Authorization headers for the default test user."""
    return headers_for(test_user)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (no auth, no database overrides)."""
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    auth_provider: JWTAuthProvider,
    sender: RecordingSender,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client wired to the in-memory database.

    This client:
    - Uses an in-memory SQLite database
    - Validates bearer tokens with the test auth provider
    - Overrides the service factories to use the test session factory
    - Records outbound notifications instead of sending them
    """
    from api.dependencies.auth import get_auth_provider
    from api.v1.dependencies import (
        get_activity_service,
        get_invitation_service,
        get_referral_service,
        get_workspace_service,
    )
    from domain.services.activity_service import ActivityService
    from domain.services.invitation_service import InvitationService
    from domain.services.referral_service import ReferralService
    from domain.services.workspace_service import WorkspaceService
    from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
    from main import create_app

    app = create_app()

    def test_uow_factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    activity_service = ActivityService(test_uow_factory)
    workspace_service = WorkspaceService(test_uow_factory, activity_service=activity_service)
    invitation_service = InvitationService(
        test_uow_factory,
        activity_service=activity_service,
        notification_sender=sender,
    )
    referral_service = ReferralService(test_uow_factory)

    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_activity_service] = lambda: activity_service
    app.dependency_overrides[get_workspace_service] = lambda: workspace_service
    app.dependency_overrides[get_invitation_service] = lambda: invitation_service
    app.dependency_overrides[get_referral_service] = lambda: referral_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
