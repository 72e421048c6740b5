"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import os

# Settings require a signing secret; set it before the app is imported.
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-key-for-billing-tests")

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Dict
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from app.main import app
from app.models.base import Base
from app.models.agency import Agency
from app.db.session import get_db
from app.core.auth import create_access_token
from app.services import email as email_module
from tests.factories import AgencyFactory


# Test database URL
# WHY: Using SQLite for tests eliminates external database dependencies
# and makes tests faster. StaticPool keeps the single in-memory database
# alive across connections.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state,
    preventing test pollution and ensuring test isolation.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    Matches the application's session settings (no autoflush, no expiry
    on commit).

    Yields:
        AsyncSession: Database session for the test
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: AsyncClient allows testing FastAPI endpoints without running
    a real server, making tests faster and more reliable.

    Yields:
        AsyncClient: HTTP client for making test requests
    """

    async def override_get_db():
        """Override database dependency with test session."""
        # Each request starts from an empty identity map, like a fresh
        # session in production.
        db_session.expunge_all()
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise
        finally:
            db_session.expunge_all()

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_agency(db_session: AsyncSession) -> Agency:
    """
    Create the agency most tests act as.

    WHY: Every billing record is agency-scoped.
    """
    return await AgencyFactory.create(
        db_session,
        user_id="user-agency-1",
        agency_name="Studio North",
        email="billing@studionorth.test",
        currency="EUR",
    )


@pytest_asyncio.fixture
async def other_agency(db_session: AsyncSession) -> Agency:
    """A second tenant used for isolation tests."""
    return await AgencyFactory.create(
        db_session,
        user_id="user-agency-2",
        agency_name="Other Agency",
    )


def _auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


@pytest.fixture
def auth_headers(test_agency: Agency) -> Dict[str, str]:
    """Bearer token for the owner of test_agency."""
    return _auth_headers(test_agency.user_id)


@pytest.fixture
def other_auth_headers(other_agency: Agency) -> Dict[str, str]:
    """Bearer token for the owner of other_agency."""
    return _auth_headers(other_agency.user_id)


@pytest.fixture(autouse=True)
def use_mock_email_provider(monkeypatch):
    """
    Use mock email provider for all tests.

    WHY: Tests should not send real emails. The mock provider:
    - Tracks sent emails for verification in tests
    - Is always "configured" so it gets used
    - Doesn't require API keys
    """
    from app.core import config

    email_module.MockEmailProvider.clear_sent_emails()
    monkeypatch.setattr(config.settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(config.settings, "EMAIL_OVERRIDE_TO", None)
    email_module.reset_email_service()

    yield

    email_module.reset_email_service()
    email_module.MockEmailProvider.clear_sent_emails()
