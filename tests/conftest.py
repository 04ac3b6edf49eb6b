"""Test fixtures — a throwaway SQLite database per test.

Learn: The environment is pointed at a file-backed SQLite database (via
aiosqlite) before the app is imported, so the module-level engine, the
health check and the request handlers all talk to the same database.

Each test gets a fresh schema (create_all / drop_all) and a session that
the app's get_db dependency is overridden to use. bcrypt runs at its
minimum cost to keep registration fast.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="bearer-identity-tests-")
os.environ["BEARER_IDENTITY_DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{_DB_DIR}/identity.sqlite"
)
os.environ["BEARER_IDENTITY_BCRYPT_ROUNDS"] = "4"
os.environ["BEARER_IDENTITY_REDIS_URL"] = "redis://127.0.0.1:1/0"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from bearer_identity.db.engine import async_session_factory, engine, get_db  # noqa: E402
from bearer_identity.db.models import Base  # noqa: E402
from bearer_identity.main import app  # noqa: E402


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session over a freshly created schema."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = async_session_factory()
    try:
        yield session
    finally:
        await session.close()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        # Pooled connections must not outlive this test's event loop.
        await engine.dispose()


def _override_db(db_session):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client against the app, sharing the test's session."""
    _override_db(db_session)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def lenient_client(db_session):
    """Like `client`, but unhandled app errors come back as 500 responses.

    Learn: ASGITransport re-raises app exceptions by default. Tests that
    assert a hard fault reaches the transport as a 500 need it off.
    """
    _override_db(db_session)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
