"""
Database session configuration.

This module handles database engine creation and session management
using SQLAlchemy with async support (PostgreSQL in production, SQLite for tests).
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings


def _engine_options() -> dict:
    """Pool sizing only applies to server databases."""
    if settings.database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
    }


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    future=True,
    **_engine_options(),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker:
    """
    FastAPI dependency for batch jobs that open one session per unit of work.

    Overridden in tests alongside get_db.
    """
    return AsyncSessionLocal
