"""Async SQLAlchemy engine and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from hrflow.config import settings

# Async engine for FastAPI
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.ENVIRONMENT == "development",
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

# Async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncSession:
    """FastAPI dependency: yield an async database session.

    One session (and one transaction) per request: workflow services flush
    their writes, and the whole unit is committed here or rolled back.
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


async def flush_or_raise(session: AsyncSession, operation: str) -> None:
    """Flush the pending unit of work as one batch.

    On a store failure the transaction is rolled back (no partial state
    survives) and the failure is re-raised as ``UpstreamWriteException``.
    """
    from sqlalchemy.exc import SQLAlchemyError

    from hrflow.common.exceptions import UpstreamWriteException

    try:
        await session.flush()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise UpstreamWriteException(operation, exc) from exc
