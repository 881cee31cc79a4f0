"""
Async engine, session factory and the per-request unit of work.

Services only flush; `get_db` commits once the handler returns and rolls
everything back if any exception escapes. A registration that reserves a
slot, creates an inscription and opens a payment is therefore committed
as one transaction or not at all.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.engine import make_url

from onelastevent.core.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    # SQLite (local runs, tests) has no server-side pool to tune
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
