"""
BettsTax Practice - Test Configuration

Pytest fixtures and configuration.

Tests run against an in-memory SQLite database (aiosqlite) so they need
no PostgreSQL server. Environment defaults are set before the application
is imported because settings are read at import time.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("TAX_AUTHORITY_BASE_URL", "")

from datetime import timedelta
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_async_session
from app.models.associate_permission import AssociatePermission, PermissionLevel
from app.models.base import utc_now
from app.models.tax_filing import TaxFiling
from app.models.user import Client, TaxpayerCategory, User, UserRole
from app.utils.permissions import ActorContext
from app.utils.security import get_password_hash
from main import app
from tests.factories import TEST_PASSWORD, actor_for, make_filing, make_permission, save


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# Create test engine (one shared in-memory connection)
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def test_client_record(db_session: AsyncSession) -> Client:
    """Create the primary test client (taxpayer)."""
    return await save(
        db_session,
        Client(
            id=uuid4(),
            client_number=42,
            name="Freetown Trading Ltd",
            tin="TIN-000042",
            email="accounts@freetowntrading.com",
            taxpayer_category=TaxpayerCategory.MEDIUM,
            is_individual=False,
        ),
    )


@pytest_asyncio.fixture
async def other_client_record(db_session: AsyncSession) -> Client:
    """Create a second client the associates have no access to."""
    return await save(
        db_session,
        Client(
            id=uuid4(),
            client_number=7,
            name="Bo Rice Mills",
            tin="TIN-000007",
            taxpayer_category=TaxpayerCategory.SMALL,
            is_individual=False,
        ),
    )


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await save(
        db_session,
        User(
            id=uuid4(),
            email="admin@bettstax.com",
            hashed_password=get_password_hash(TEST_PASSWORD),
            first_name="Aminata",
            last_name="Kamara",
            role=UserRole.ADMIN,
            is_active=True,
        ),
    )


@pytest_asyncio.fixture
async def associate_user(db_session: AsyncSession) -> User:
    return await save(
        db_session,
        User(
            id=uuid4(),
            email="associate@bettstax.com",
            hashed_password=get_password_hash(TEST_PASSWORD),
            first_name="Mohamed",
            last_name="Sesay",
            role=UserRole.ASSOCIATE,
            is_active=True,
        ),
    )


@pytest_asyncio.fixture
async def second_associate(db_session: AsyncSession) -> User:
    return await save(
        db_session,
        User(
            id=uuid4(),
            email="associate2@bettstax.com",
            hashed_password=get_password_hash(TEST_PASSWORD),
            first_name="Fatmata",
            last_name="Conteh",
            role=UserRole.ASSOCIATE,
            is_active=True,
        ),
    )


@pytest_asyncio.fixture
async def client_user(db_session: AsyncSession, test_client_record: Client) -> User:
    """Self-service user of the primary client."""
    return await save(
        db_session,
        User(
            id=uuid4(),
            email="owner@freetowntrading.com",
            hashed_password=get_password_hash(TEST_PASSWORD),
            first_name="Ibrahim",
            last_name="Bangura",
            role=UserRole.CLIENT,
            client_id=test_client_record.id,
            is_active=True,
        ),
    )


@pytest_asyncio.fixture
async def submit_permission(
    db_session: AsyncSession, associate_user: User, test_client_record: Client
) -> AssociatePermission:
    """Associate may do everything up to submit for the primary client."""
    return await make_permission(db_session, associate_user, test_client_record, PermissionLevel.SUBMIT)


@pytest_asyncio.fixture
async def read_permission(
    db_session: AsyncSession, associate_user: User, test_client_record: Client
) -> AssociatePermission:
    """Associate may only read the primary client's filings."""
    return await make_permission(db_session, associate_user, test_client_record, PermissionLevel.READ)


@pytest_asyncio.fixture
async def expired_permission(
    db_session: AsyncSession, associate_user: User, test_client_record: Client
) -> AssociatePermission:
    """Submit-level grant that expired yesterday."""
    return await make_permission(
        db_session,
        associate_user,
        test_client_record,
        PermissionLevel.SUBMIT,
        expires_at=utc_now() - timedelta(days=1),
    )


@pytest_asyncio.fixture
async def draft_filing(db_session: AsyncSession, test_client_record: Client) -> TaxFiling:
    """Draft GST filing with one schedule line."""
    return await make_filing(db_session, test_client_record)


@pytest.fixture
def admin_actor(admin_user: User) -> ActorContext:
    return actor_for(admin_user)


@pytest.fixture
def associate_actor(associate_user: User) -> ActorContext:
    return actor_for(associate_user)


@pytest.fixture
def client_actor(client_user: User) -> ActorContext:
    return actor_for(client_user)
