"""PostgreSQL store with async SQLAlchemy.

Handles:
- Database session management
- Connection pooling
- Atomic counter primitive (upsert-increment)
"""

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.settings import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


# Engine and session factory (initialized on startup)
_engine = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str | None = None) -> None:
    """Initialize database connection pool.

    Args:
        database_url: Override for the configured URL (tests use SQLite).
    """
    global _engine, _session_factory

    settings = get_settings()
    url = database_url or settings.async_database_url
    connect_args = settings.asyncpg_connect_args if database_url is None else {}
    # SQLite file databases get NullPool, which takes no sizing arguments
    pool_args: dict[str, Any] = {"pool_size": 5, "max_overflow": 10} if url.startswith("postgresql") else {}
    _engine = create_async_engine(
        url,
        echo=settings.debug,
        connect_args=connect_args,
        pool_pre_ping=True,
        **pool_args,
    )
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    """Close database connection pool."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def ping_db() -> None:
    """Run a trivial query to validate connectivity."""
    async with get_session() as session:
        await session.execute(text("SELECT 1"))


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session context manager.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def upsert_increment(
    session: AsyncSession,
    model: type[Base],
    keys: Mapping[str, Any],
    counter: str,
    amount: int = 1,
    extra_on_update: Mapping[str, Any] | None = None,
) -> None:
    """Atomically create-or-increment a counter row.

    Single INSERT ... ON CONFLICT DO UPDATE statement, so concurrent callers
    for the same key never lose updates. `keys` must match the table's
    primary key / unique constraint.

    Args:
        session: Active session (committed by the caller's context).
        model: Mapped class owning the counter column.
        keys: Conflict target columns and their values.
        counter: Name of the integer column to increment.
        amount: Increment step.
        extra_on_update: Additional columns to set when the row already exists.
    """
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        insert_fn = postgresql.insert
    elif dialect == "sqlite":
        insert_fn = sqlite.insert
    else:
        raise RuntimeError(f"upsert_increment is not supported on dialect {dialect}")

    table = model.__table__
    stmt = insert_fn(table).values(**keys, **{counter: amount})
    set_: dict[str, Any] = {counter: table.c[counter] + amount}
    if extra_on_update:
        set_.update(extra_on_update)
    stmt = stmt.on_conflict_do_update(index_elements=list(keys), set_=set_)
    await session.execute(stmt)


async def create_tables() -> None:
    """Create all tables (for development/testing only)."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
