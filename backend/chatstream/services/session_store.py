"""Session Store — durable keyed session records {id, name, created_at}, CRUD only.

Invariants:
    - Opened once per process (FastAPI lifespan) and injected into handlers
    - list_all() is ordered most-recently-created first
    - delete() removes the session record AND the engine's thread state
    - Every write commits inside DatabaseSessionManager.session() (auto-rollback)

Design Decisions:
    - Explicit store object instead of module-level handles: tests swap in an
      in-memory engine or a fake through the get_session_store dependency
    - rename/delete of an unknown id are silent no-ops (UPDATE/DELETE semantics)
"""

import logging

from sqlalchemy import delete, select, update

from chatstream.infrastructure.database import DatabaseSessionManager
from chatstream.models.chat_session import ChatSession
from chatstream.models.thread_state import ThreadState

logger = logging.getLogger(__name__)


class SqlSessionStore:
    """SessionStore backed by SQLAlchemy async sessions."""

    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    @classmethod
    def open(
        cls, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ) -> "SqlSessionStore":
        return cls(DatabaseSessionManager(
            database_url, pool_size=pool_size, max_overflow=max_overflow,
        ))

    async def close(self) -> None:
        await self.db.dispose()

    async def create(self, session_id: str, name: str) -> None:
        async with self.db.session() as db:
            db.add(ChatSession(id=session_id, name=name))
            await db.commit()
        logger.info("Session created", extra={"thread_id": session_id})

    async def list_all(self) -> list[dict]:
        async with self.db.session() as db:
            result = await db.execute(
                select(ChatSession).order_by(ChatSession.created_at.desc()),
            )
            return [s.to_summary() for s in result.scalars().all()]

    async def rename(self, session_id: str, name: str) -> None:
        async with self.db.session() as db:
            await db.execute(
                update(ChatSession)
                .where(ChatSession.id == session_id)
                .values(name=name),
            )
            await db.commit()

    async def delete(self, session_id: str) -> None:
        async with self.db.session() as db:
            await db.execute(
                delete(ChatSession).where(ChatSession.id == session_id),
            )
            await db.execute(
                delete(ThreadState).where(ThreadState.thread_id == session_id),
            )
            await db.commit()
        logger.info("Session deleted", extra={"thread_id": session_id})

    async def exists(self, session_id: str) -> bool:
        async with self.db.session() as db:
            result = await db.execute(
                select(ChatSession.id).where(ChatSession.id == session_id),
            )
            return result.scalar_one_or_none() is not None
