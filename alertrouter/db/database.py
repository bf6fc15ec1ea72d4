"""Async database engine and session dependency.

Repositories receive an AsyncSession from get_session (FastAPI) or from
async_session directly (scripts and workers).
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from alertrouter.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncSession:
    """Yield one session per request; it is closed when the request ends."""
    async with async_session() as session:
        yield session
