"""
Engine, session factory and the request-scoped session dependency.

Every service operation receives its AsyncSession explicitly; there is no
module-level session shared between requests. Mutating operations run inside
``transaction()`` so a domain error anywhere in the operation rolls back
everything it touched (capacity holds included).
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings

settings = get_settings()


def build_engine(url: str | None = None):
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        return create_async_engine(url, connect_args={"timeout": 30})
    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = build_engine()
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def transaction(db: AsyncSession):
    """Commit on success, roll back on any exception."""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
