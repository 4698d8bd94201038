"""
Database Configuration
SQLAlchemy async setup (PostgreSQL in production, SQLite for local runs)
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def normalize_database_url(url: str) -> str:
    """Convert postgres:// URLs to the asyncpg driver."""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    url = normalize_database_url(database_url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database (create tables)"""
    async with engine.begin() as conn:
        # Import all models here to ensure they're registered
        from perp_risk.infrastructure.db import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
