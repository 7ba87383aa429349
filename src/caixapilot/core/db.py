"""Async engine and per-request sessions for the cash session backend.

The schema is owned by alembic (see alembic/versions); nothing here creates
tables.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from caixapilot.core.settings import DATABASE_URL as RAW_DATABASE_URL

DEFAULT_DATABASE_URL = "postgresql+asyncpg://caixapilot:caixapilot@db:5432/caixapilot"

_ASYNC_SCHEMES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}


def normalize_database_url(url: str | None) -> str:
    """Point plain postgres URLs at the asyncpg driver; empty means the dev default."""
    if not url:
        return DEFAULT_DATABASE_URL
    for scheme, async_scheme in _ASYNC_SCHEMES.items():
        if url.startswith(scheme):
            return async_scheme + url[len(scheme):]
    return url


DATABASE_URL = normalize_database_url(RAW_DATABASE_URL)

engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
