"""
Travel Log API — Database Session Management
==============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system, and
       by the stats broadcaster, which opens its own sessions.
When:  Engine is created at module import; sessions are created per-request.

Connection Pooling Strategy:
    PostgreSQL (asyncpg):
        pool_size / max_overflow from settings, pool_pre_ping, pool_recycle=3600
    SQLite (aiosqlite, development and tests):
        SQLAlchemy's default pool for the URL; pool sizing arguments are not
        accepted by it and are left out.
"""

import math
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from travellog.config import settings


# ── SQLite support ────────────────────────────────────────────────────────
# The spherical distance filter on places relies on these SQL functions,
# which PostgreSQL provides natively and SQLite only in some builds
# (SQLite has no LEAST, its two-argument MIN is spelled differently).
SQLITE_MATH_FUNCTIONS = {
    "radians": (1, math.radians),
    "sin": (1, math.sin),
    "cos": (1, math.cos),
    "asin": (1, math.asin),
    "sqrt": (1, math.sqrt),
    "least": (2, min),
}


def _register_sqlite_functions(dbapi_connection, connection_record) -> None:
    for name, (arity, function) in SQLITE_MATH_FUNCTIONS.items():
        dbapi_connection.create_function(name, arity, function)


def install_sqlite_functions(async_engine: AsyncEngine) -> None:
    """Registers the math functions on every new SQLite connection of an engine."""
    event.listen(async_engine.sync_engine, "connect", _register_sqlite_functions)


def build_engine(database_url: str) -> AsyncEngine:
    """
    Creates the async engine for a database URL.

    Echo SQL queries only at DEBUG level; SQL logging is noisy otherwise.
    """
    if database_url.startswith("sqlite"):
        async_engine = create_async_engine(
            database_url,
            echo=settings.log_level == "DEBUG",
        )
        install_sqlite_functions(async_engine)
        return async_engine

    return create_async_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=settings.log_level == "DEBUG",
    )


# ── Engine Configuration ──────────────────────────────────────────────────
engine = build_engine(settings.database_url)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit, so a
# response can still be serialized from the committed objects
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with the shared metadata
    (used by Alembic for migrations and by the test suite for create_all).
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler and its sub-dependencies
           (FastAPI caches the dependency, so they all share this session)
        3. On success: commits whatever the services left pending
        4. On error: rolls back the transaction (discards changes)
        5. Always: closes the session (returns connection to pool)

    Services performing writes commit explicitly once their unit of work is
    complete; the final commit here is then a no-op.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections. Called during application shutdown."""
    await engine.dispose()
