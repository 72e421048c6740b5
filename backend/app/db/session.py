"""
Database session management.

One session per request is one unit of work: every write a billing
operation makes (invoice, items, agency counters, proposal link) commits
or rolls back together.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    # SQLite (local development) has no server-side pool to size.
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG}
    return {
        "echo": settings.DEBUG,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_async_engine(
    settings.async_database_url,
    **_engine_options(settings.async_database_url),
)

# Responses are built from ORM rows after commit, so nothing expires.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Commits when the route returns and rolls back when it raises, so a
    failed conversion leaves no half-created invoice and no consumed
    invoice number.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
