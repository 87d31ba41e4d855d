"""Database Engine and Session Management"""

import re
import ssl
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from schoolms.config import settings


def build_async_url(url: str) -> tuple[str, dict]:
    """
    Rewrite a sync PostgreSQL URL for asyncpg.

    asyncpg does not understand ``sslmode``; it is stripped from the query
    string and replaced by an SSL context in ``connect_args``.

    Returns:
        Tuple of (async url, connect_args)
    """
    async_url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    connect_args = {}
    if re.search(r"[?&]sslmode=(require|required|verify-full)", async_url, re.I):
        ssl_ctx = ssl.create_default_context()
        ssl_ctx.check_hostname = False
        ssl_ctx.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ssl_ctx
        async_url = re.sub(r"[?&]sslmode=[^&]+", "", async_url, flags=re.I)
    async_url = async_url.replace("?&", "?").rstrip("?")
    return async_url, connect_args


database_url, connect_args = build_async_url(settings.DATABASE_URL)

engine = create_async_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    echo=settings.DEBUG,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for declarative models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped database session.

    Commits when the endpoint returns normally and rolls back on any
    exception, so a multi-row write such as a parent payment collection
    either lands completely or not at all.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create tables (development only, use Alembic elsewhere)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of pooled connections"""
    await engine.dispose()
