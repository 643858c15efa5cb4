"""
CoinShop - Database Configuration

Async SQLAlchemy setup with connection pooling and session management.
"""

import logging
import ssl
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from coinshop.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


def _engine_options(url: str) -> dict:
    """Pooling for server databases; TLS with certificate checks when DB_SSL_REQUIRED is set."""
    options: dict = {"echo": settings.debug, "connect_args": {}}
    if settings.db_ssl_required:
        context = ssl.create_default_context()
        context.check_hostname = True
        context.verify_mode = ssl.CERT_REQUIRED
        options["connect_args"]["ssl"] = context
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(settings.async_database_url, **_engine_options(settings.async_database_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commits on success, rolls back on any error.

    Used directly by the CLI, scheduler and Celery tasks:

        async with get_db_context() as db:
            await close_expired_auctions(db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one unit of work per request."""
    async with get_db_context() as session:
        yield session


async def check_db(session: AsyncSession) -> None:
    """Round-trip a trivial query; raises if the database is unreachable."""
    await session.execute(text("SELECT 1"))


async def init_db() -> None:
    """
    Initialize database tables.

    Called on application startup to create all tables.
    In production, use Alembic migrations instead.
    """
    async with engine.begin() as conn:
        # Import all models to register them with Base
        import coinshop.models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")


async def close_db() -> None:
    """
    Close database connections.

    Called on application shutdown.
    """
    await engine.dispose()
    logger.info("Database connections closed")
