"""
Database configuration and connection management.
"""

from sqlalchemy import event
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession
from loguru import logger

from .config import settings


def to_async_url(url: str) -> str:
    """Map a sync database URL onto its async driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def configure_sqlite_engine(async_engine: AsyncEngine) -> None:
    """
    Make SQLite behave like the production store.

    Enables foreign keys (ON DELETE CASCADE) and takes over transaction
    begin from the driver so SAVEPOINTs work.
    """
    @event.listens_for(async_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(async_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


async_database_url = to_async_url(settings.DATABASE_URL)

if async_database_url.startswith("sqlite"):
    engine = create_async_engine(async_database_url, echo=False)
    configure_sqlite_engine(engine)
else:
    engine = create_async_engine(
        async_database_url,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_recycle=300,
    )

# Create async session factory
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Create declarative base
Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Get database session.

    One session per request; services commit once per operation, anything
    left uncommitted is rolled back.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            # Don't log HTTPException as database errors - they're expected API responses
            from fastapi import HTTPException
            from app.utils.exceptions import CryptVaultException
            if not isinstance(e, (HTTPException, CryptVaultException)):
                logger.error("Database session error: {}", str(e))
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables():
    """Create database tables."""
    try:
        async with engine.begin() as conn:
            # Import all models to ensure they're registered
            from app import models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise

