"""Database module with async SQLAlchemy engine and session management."""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .settings import get_settings

# SQLAlchemy base for models
Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def build_engine(db_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool options suited to the backend."""
    if db_url.startswith("sqlite"):
        if ":memory:" in db_url or db_url.endswith("://"):
            # One shared connection so every session sees the same in-memory database
            return create_async_engine(
                db_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(db_url, echo=echo)

    return create_async_engine(
        db_url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
    )


def configure_database(db_url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """(Re)configure the module-level engine and session factory."""
    global _engine, _session_factory
    settings = get_settings()
    _engine = build_engine(db_url or settings.db_url, settings.db_echo if echo is None else echo)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return _engine


def get_engine() -> AsyncEngine:
    """Get the async engine, creating it from settings on first use."""
    if _engine is None:
        configure_database()
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get the async session maker."""
    if _session_factory is None:
        configure_database()
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_all(engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables in the database."""
    # Import models so they register on Base.metadata
    from . import models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all(engine: Optional[AsyncEngine] = None) -> None:
    """Drop all tables in the database."""
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
