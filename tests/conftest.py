"""Shared fixtures for SweetLink tests.

Uses a file-backed SQLite database (aiosqlite) by default so that several
sessions can run truly concurrent transactions. No PostgreSQL required.
Set TEST_DATABASE_URL to override (e.g. for CI with real PostgreSQL).
"""

import os
import tempfile
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

_TEST_DB_DIR = tempfile.mkdtemp(prefix="sweetlink-tests-")
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}",
)

# Ensure settings can be loaded without .env
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-unit-tests")
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("INVITE_SWEEP_INTERVAL_SECONDS", "0")
# Unreachable on purpose: the rate limiter falls back to in-memory storage
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")

from sweetlink.database import Base  # noqa: E402

# ---------------------------------------------------------------------------
# Engine — one connection per session (NullPool) so transactions are isolated
# ---------------------------------------------------------------------------

_engine_kwargs = {"poolclass": NullPool}
if TEST_DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"timeout": 30}

_engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs)
_TestSession = async_sessionmaker(
    bind=_engine, class_=AsyncSession, expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Per-test: fresh tables
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def _setup_tables():
    import sweetlink.models  # noqa: F401 — populate Base.metadata

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


# ---------------------------------------------------------------------------
# Reset rate-limiter counters before every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Clear in-memory rate-limit counters so tests never block each other."""
    from sweetlink.core.rate_limit import limiter

    storage = getattr(limiter, "_storage", None)
    if storage is not None and hasattr(storage, "reset"):
        storage.reset()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@pytest.fixture()
def session_factory():
    """Factory for independent sessions, e.g. to simulate concurrent requests."""
    return _TestSession


@pytest_asyncio.fixture()
async def db_session():
    async with _TestSession() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# HTTP test client — each request gets its own committed transaction
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def client():
    from sweetlink.database import get_db
    from sweetlink.main import app

    async def _override_get_db():
        async with _TestSession() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience: registered accounts with an open session
# ---------------------------------------------------------------------------

@pytest.fixture()
def register_account(client: AsyncClient):
    """Return a coroutine that registers + logs in an account.

    The returned dict has keys: headers, account_id, email, password, session
    """

    async def _register(username: str | None = None, password: str = "testpassword123"):
        suffix = uuid.uuid4().hex[:8]
        username = username or f"user-{suffix}"
        email = f"{username}-{suffix}@example.com"
        resp = await client.post("/api/v1/accounts/register-and-login", json={
            "username": username,
            "email": email,
            "password": password,
        })
        assert resp.status_code == 201, resp.text
        session = resp.json()
        return {
            "headers": {"Authorization": f"Bearer {session['access_token']}"},
            "account_id": session["account"]["id"],
            "email": email,
            "password": password,
            "session": session,
        }

    return _register


@pytest_asyncio.fixture()
async def alice(register_account):
    return await register_account("alice")


@pytest_asyncio.fixture()
async def bob(register_account):
    return await register_account("bob")
