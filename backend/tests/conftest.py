"""
Test configuration and fixtures for Mechanic Chat.

Every test gets a fresh in-memory SQLite database wired into the
application's DatabaseManager, and a private upload directory.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import mechanic_chat.infrastructure.db.models  # noqa: F401
from mechanic_chat.infrastructure.db.database import get_db_manager
from mechanic_chat.infrastructure.db.models import SubscriptionModel, User, utcnow
from mechanic_chat.infrastructure.security import hash_password
from mechanic_chat.infrastructure.services import file_storage
from mechanic_chat.infrastructure.services.file_storage import FileStorage


PASSWORD = "Abcdef12"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def db_engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    manager = get_db_manager()
    manager._engine = engine
    manager._session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    yield engine

    manager._engine = None
    manager._session_factory = None
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests."""
    factory = get_db_manager().session_factory
    async with factory() as session:
        yield session


@pytest.fixture(autouse=True)
def storage(tmp_path):
    """Private blob directory for each test."""
    store = FileStorage(str(tmp_path / "uploads"))
    previous = file_storage._file_storage_instance
    file_storage._file_storage_instance = store
    yield store
    file_storage._file_storage_instance = previous


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application."""
    from mechanic_chat.main import app
    return app


@pytest.fixture
def client(app):
    """Get synchronous test client (no database)."""
    return TestClient(app)


@pytest.fixture
async def make_client(app, db_engine):
    """
    Factory for async clients bound to the test database.

    Each client has its own cookie jar, so one client per party
    (customer, second customer, admin).
    """
    clients = []

    def _make() -> AsyncClient:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")
        clients.append(ac)
        return ac

    yield _make

    for ac in clients:
        await ac.aclose()


@pytest.fixture
def async_client(make_client) -> AsyncClient:
    """Get async test client."""
    return make_client()


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_stripe_service():
    """Stripe verification that always succeeds."""
    with patch(
        "mechanic_chat.infrastructure.services.subscription_service.get_stripe_service"
    ) as mock_get:
        mock_service = MagicMock()
        mock_service.verify_payment = AsyncMock()
        mock_get.return_value = mock_service
        yield mock_service


@pytest.fixture
def mock_notifier(app):
    """Replace the staff notifier with an AsyncMock."""
    from mechanic_chat.api.dependencies import get_notifier

    notifier = MagicMock()
    notifier.notify_first_message = AsyncMock(return_value=True)
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield notifier
    app.dependency_overrides.pop(get_notifier, None)


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def create_user(db_engine):
    """Insert a user directly and return it."""

    async def _create(
        username: str = "alice",
        email: str = None,
        is_admin: bool = False,
        password: str = PASSWORD,
        has_subscription: bool = False,
    ) -> User:
        factory = get_db_manager().session_factory
        async with factory() as session:
            user = User(
                username=username,
                email=(email or f"{username}@x.com").lower(),
                password_hash=hash_password(password),
                is_admin=is_admin,
                has_subscription=has_subscription,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _create


@pytest.fixture
def grant_subscription(db_engine):
    """Insert a ledger row for a user."""

    async def _grant(
        user: User,
        days: int = 30,
        status: str = "active",
        purchased_at=None,
    ) -> SubscriptionModel:
        purchased_at = purchased_at or utcnow()
        factory = get_db_manager().session_factory
        async with factory() as session:
            row = SubscriptionModel(
                user_id=user.id,
                amount=Decimal("9.99"),
                status=status,
                purchased_at=purchased_at,
                expires_at=purchased_at + timedelta(days=days),
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    return _grant


@pytest.fixture
async def subscriber(create_user, grant_subscription) -> User:
    """A customer with an active subscription."""
    user = await create_user("alice")
    await grant_subscription(user)
    return user


@pytest.fixture
async def admin_user(create_user) -> User:
    return await create_user("admin", email="admin@x.com", is_admin=True)


@pytest.fixture
def login():
    """Log a client in and return the response."""

    async def _login(ac: AsyncClient, email: str, password: str = PASSWORD, admin: bool = False):
        path = "/api/admin/login" if admin else "/api/users/login"
        response = await ac.post(path, json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response

    return _login
