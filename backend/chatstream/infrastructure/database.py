"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py)
    - Pool sizing only applied to server databases (SQLite uses its own pool)

Design Decisions:
    - No module-level singleton: the manager is owned by the SessionStore that
      the FastAPI lifespan opens and closes (ADR: explicit lifecycle, test doubles
      without global mocking)
    - expire_on_commit=False: prevents lazy-load issues in async context
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from chatstream.core.errors import DatabaseError
from chatstream.db.base import Base

logger = logging.getLogger(__name__)


def _engine_kwargs(database_url: str, pool_size: int, max_overflow: int) -> dict:
    if database_url.startswith("sqlite"):
        # In-memory SQLite lives per connection: share one across sessions
        return {"poolclass": StaticPool} if ":memory:" in database_url else {}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


# Most specific first: IntegrityError and OperationalError subclass DBAPIError
_ERROR_CLASSES = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
)


def _classify(e: SQLAlchemyError) -> tuple[str, str]:
    for cls, message, operation in _ERROR_CLASSES:
        if isinstance(e, cls):
            return message, operation
    return "Database operation failed", "unknown"


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
        engine: AsyncEngine | None = None,
    ):
        self.engine = engine or create_async_engine(
            database_url, **_engine_kwargs(database_url, pool_size, max_overflow),
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            message, operation = _classify(e)
            logger.error("DB %s error: %s", operation, e)
            raise DatabaseError(message, operation) from e
        finally:
            await session.close()

    async def create_schema(self) -> None:
        """Create missing tables (dev/SQLite convenience; prod uses alembic)."""
        import chatstream.models  # noqa: F401
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
