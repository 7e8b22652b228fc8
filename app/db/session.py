from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Postgres (asyncpg) in production, SQLite (aiosqlite) for local runs and tests.
    pool_pre_ping / pool_recycle only matter for networked databases that drop idle connections.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url, echo=echo, future=True)
    return create_async_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        pool_recycle=300,
    )


engine = build_engine(settings.database_url, echo=settings.sql_echo)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; services own commit/rollback."""
    async with AsyncSessionLocal() as session:
        yield session

