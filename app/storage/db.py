# ==== DATABASE CONNECTION AND SESSION MANAGEMENT ==== #

"""
Database connection and session management for Procurement Hub.

This module provides database connectivity with async SQLAlchemy for the
Supabase Postgres instance (asyncpg) and for local SQLite files (aiosqlite),
plus session lifecycle management for request handlers and scripts.
"""

import datetime as dt
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
    AsyncEngine
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, StaticPool

from app.settings import settings
from app.observability.metrics import db_connections_active


# ==== SQLALCHEMY CONFIGURATION ==== #

# SQLAlchemy base for model definitions
Base = declarative_base()

# Global engine and session factory instances
engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def utcnow() -> dt.datetime:
    """Naive UTC timestamp used for all DateTime columns."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


# ==== DATABASE INITIALIZATION ==== #

def _postgres_engine_options(db_url: str) -> tuple[str, dict]:
    """Normalize a Postgres URL for asyncpg and build engine options."""
    if not db_url.startswith("postgresql+asyncpg://"):
        db_url = db_url.replace("postgresql+psycopg://", "postgresql+asyncpg://")
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://")

    # asyncpg spells the SSL flag differently
    if "sslmode=require" in db_url:
        db_url = db_url.replace("sslmode=require", "ssl=require")

    is_pooler = "pooler" in db_url

    # PgBouncer compatibility - use unique statement names to avoid collisions
    import asyncpg

    class _UniqueStmtConnection(asyncpg.Connection):
        """asyncpg Connection with UUID-based prepared-statement IDs."""

        def _get_unique_id(self, prefix: str) -> str:
            return f"__asyncpg_{prefix}_{uuid4().hex}__"

    options = {
        "poolclass": NullPool if is_pooler else None,
        "isolation_level": "AUTOCOMMIT" if is_pooler else "READ_COMMITTED",
        "connect_args": {
            "statement_cache_size": 0,
            "connection_class": _UniqueStmtConnection,
            "server_settings": {
                "application_name": settings.SERVICE_NAME,
                "timezone": "UTC"
            }
        },
    }
    return db_url, options


def init_database() -> None:
    """
    Initialize database engine and session factory.

    Sets up the async SQLAlchemy engine with the driver options that match
    the configured URL. In-memory SQLite shares one connection so that every
    session sees the same schema.
    """
    global engine, SessionLocal

    if engine is not None:
        return

    db_url = settings.DATABASE_URL

    if db_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url:
            options["poolclass"] = StaticPool
    else:
        db_url, options = _postgres_engine_options(db_url)

    engine = create_async_engine(
        db_url,
        echo=settings.APP_ENV == "dev" and settings.LOG_LEVEL.upper() == "DEBUG",
        **{key: value for key, value in options.items() if value is not None}
    )

    SessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


async def create_all() -> None:
    """Create every table known to the model registry."""
    # Registers the mapped classes on Base.metadata
    import app.storage.models  # noqa: F401

    if engine is None:
        init_database()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all() -> None:
    """Drop every table known to the model registry."""
    import app.storage.models  # noqa: F401

    if engine is None:
        init_database()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session with automatic cleanup.

    Yields:
        AsyncSession: Database session

    Raises:
        Exception: If database connection fails
    """
    if SessionLocal is None:
        init_database()

    async with SessionLocal() as session:
        try:
            db_connections_active.inc()
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            db_connections_active.dec()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Commits when the handler returns and rolls back when it raises, so a
    multi-row workflow either lands completely or not at all.

    Yields:
        AsyncSession: Database session for request handling
    """
    if SessionLocal is None:
        init_database()

    async with SessionLocal() as session:
        db_connections_active.inc()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            db_connections_active.dec()


async def close_database() -> None:
    """Close database connections on shutdown."""
    global engine, SessionLocal
    if engine is not None:
        await engine.dispose()
        engine = None
        SessionLocal = None
