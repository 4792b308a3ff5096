"""
Test infrastructure for the Conduit Articles API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- Users are created through the API; the ``register`` fixture returns the
  ``Authorization`` headers for the new user so tests can act as them.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.database import Base, get_db
from conduit.main import app
from conduit.middleware import install_query_counter
from conduit.models import User

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly.
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register(async_client: AsyncClient):
    """
    Factory fixture: ``headers = await register("alice")`` creates the user
    through the API and returns ``{"Authorization": "Token <jwt>"}``.
    """

    async def _register(username: str) -> dict:
        resp = await async_client.post("/api/users", json={
            "user": {"username": username, "email": f"{username}@example.com"},
        })
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Token {resp.json()['user']['token']}"}

    return _register


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory fixture creating a User row directly for service-level tests."""

    async def _make_user(username: str) -> User:
        user = User(username=username, email=f"{username}@example.com", bio=f"bio of {username}")
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user
