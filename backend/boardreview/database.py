"""SQLAlchemy 2.0 async engine, session factory, and declarative base.

Production runs against PostgreSQL (``postgresql+asyncpg://...``); local
development and the test-suite use SQLite through ``aiosqlite``.

Usage in routers::

    from boardreview.database import get_db
    from sqlalchemy.ext.asyncio import AsyncSession

    @router.get("/items")
    async def list_items(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(Item))
        return result.scalars().all()
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from boardreview.settings import get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Declarative Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy ORM models."""

    pass


# ---------------------------------------------------------------------------
# Engine + Session Factory
# ---------------------------------------------------------------------------
def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    if database_url.startswith("sqlite"):
        # SQLite serialises writers; a generous busy timeout lets concurrent
        # transactions queue instead of failing with "database is locked".
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": 30},
        )
    return create_async_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory, creating it on first use."""
    global _engine, _session_factory
    if _session_factory is None:
        settings = get_settings()
        _engine = create_engine_for_url(
            settings.database_url, echo=settings.sqlalchemy_echo
        )
        _session_factory = create_session_factory(_engine)
        logger.info("SQLAlchemy async engine configured (%s)", _engine.url.drivername)
    return _session_factory


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables. Intended for SQLite development databases and tests;
    PostgreSQL deployments are migrated with Alembic."""
    import boardreview.models.db  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


# ---------------------------------------------------------------------------
# FastAPI Dependency
# ---------------------------------------------------------------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a single read-only request.

    Mutating workflow operations open their own transactions; this session is
    used for identity lookups and projections.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.rollback()
