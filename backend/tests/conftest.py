"""
Centralized Test Configuration.
"""

import os
import tempfile

# Uploaded documents go to a throwaway directory during tests
os.environ.setdefault("DOCUMENTS_DIR", tempfile.mkdtemp(prefix="ledger-docs-"))

import pytest
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.jwt import create_access_token, build_token_payload
from backend.app.models.enums import UserRole
from backend.app.models.profile import Profile
from backend.app.models.student import Student
from backend.app.models.wallet import WalletBalance
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Hashed once, shared by every fixture profile
from backend.app.core.security import get_password_hash
TEST_PASSWORD = "secret123"
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.published = []
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, seconds, value):
        return await self.set(key, value, ex=seconds)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def publish(self, channel, message):
        if self._closed:
            return 0
        self.published.append((channel, message))
        return 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.published = []

    async def aclose(self):
        self._closed = True
        self.store = {}


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by token revocation and the change feed
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def make_profile(db_session):
    """Factory: create and commit a profile."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.PARENT, full_name: str = None, **fields) -> Profile:
        counter["n"] += 1
        n = counter["n"]
        username = fields.pop("username", f"{role.value}{n}")
        profile = Profile(
            email=fields.pop("email", f"{username}@school.om"),
            username=username,
            hashed_password=TEST_PASSWORD_HASH,
            full_name=full_name or f"{role.value.title()} {n}",
            role=role,
            is_active=True,
            is_superuser=role == UserRole.ADMIN,
            **fields
        )
        db_session.add(profile)
        await db_session.commit()
        await db_session.refresh(profile)
        return profile

    return _make


@pytest.fixture
def make_student(db_session, make_profile):
    """Factory: student profile plus its student record (card id optional)."""
    async def _make(full_name: str = None, parent: Profile = None, nfc_id: str = None, number: str = None):
        profile = await make_profile(
            UserRole.STUDENT,
            full_name=full_name,
            parent_user_id=parent.id if parent else None
        )
        student = Student(
            profile_id=profile.id,
            student_number=number or f"S-{profile.id:04d}",
            nfc_id=nfc_id
        )
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return profile, student

    return _make


@pytest.fixture
def fund_wallet(db_session):
    """Factory: set a wallet balance directly (no ledger entry)."""
    async def _fund(profile: Profile, amount) -> WalletBalance:
        wallet = WalletBalance(user_id=profile.id, balance=Decimal(str(amount)), currency="OMR")
        db_session.add(wallet)
        await db_session.commit()
        return wallet

    return _fund


@pytest.fixture
def auth_headers():
    """Build a bearer header for a profile."""
    def _headers(profile: Profile) -> dict:
        token = create_access_token(data=build_token_payload(profile))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def session_factory():
    """Independent sessions, one per simulated request."""
    return TestingSessionLocal
