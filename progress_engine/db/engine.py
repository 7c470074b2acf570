"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides an asyncpg-backed engine and a
session factory used by PgStateStore.  When it is unset, both exports are
None and the engine runs on InMemoryStateStore.

Every PgStateStore.commit() is one session_scope() transaction, so the
pool only needs to cover concurrent reconciliations plus dashboard reads
(DB_POOL_SIZE + DB_MAX_OVERFLOW).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from progress_engine.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the progress tables in db/tables.py."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=SETTINGS.db_pool_size,
        max_overflow=SETTINGS.db_max_overflow,
        # Connections dropped by the server are replaced instead of failing a commit.
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """One transaction: commit on success, roll back on any exception."""
    factory = factory or async_session_factory
    if factory is None:
        raise RuntimeError("DATABASE_URL is not configured, PgStateStore cannot open a session")
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan_db():
    """Check connectivity on startup and dispose the pool on shutdown."""
    if engine is None:
        logger.info("No DATABASE_URL configured, progress state is kept in memory")
        yield
        return

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connected: %s (pool_size=%d max_overflow=%d)",
            engine.url,
            SETTINGS.db_pool_size,
            SETTINGS.db_max_overflow,
        )
    except Exception:
        # Start anyway; /ready stays 503 until the database answers
        logger.exception("Database connection failed on startup")

    yield

    await engine.dispose()
    logger.info("Database engine disposed")
