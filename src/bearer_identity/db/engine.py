"""Async SQLAlchemy engine and session factory.

Learn: One engine per process, built from settings.database_url. Production
runs PostgreSQL over asyncpg; the tests point the same URL setting at a
SQLite file (aiosqlite). Sessions are not expired on commit because the
identity store keeps using the User it just wrote.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bearer_identity.config import settings


def _engine_options(url: str) -> dict:
    # SQLite (aiosqlite) has no server-side pool to size.
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {"pool_size": 5, "max_overflow": 15}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """Yield the request's session; store and token service share it."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
