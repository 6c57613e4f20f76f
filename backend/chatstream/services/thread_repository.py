"""Thread Repository — loads and saves the engine's stored message history per thread.

Invariants:
    - Unknown thread → empty history (threads are created lazily on first save)
    - save() replaces the whole message list (the engine owns the full log)
    - Stored dicts are validated on load through the canonical parser

Design Decisions:
    - Separate from SqlSessionStore: the engine's checkpoint is not part of the
      sidebar CRUD surface (ADR: Session Store is CRUD-only)
"""

from sqlalchemy import select

from chatstream.core.stored_messages import StoredMessage, stored_messages_from_dicts
from chatstream.infrastructure.database import DatabaseSessionManager
from chatstream.models.thread_state import ThreadState


class ThreadRepository:
    """Persists ThreadState rows."""

    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    async def load_raw(self, thread_id: str) -> list[dict]:
        async with self.db.session() as db:
            result = await db.execute(
                select(ThreadState.messages).where(ThreadState.thread_id == thread_id),
            )
            messages = result.scalar_one_or_none()
            return list(messages or [])

    async def load(self, thread_id: str) -> list[StoredMessage]:
        return stored_messages_from_dicts(await self.load_raw(thread_id))

    async def save(self, thread_id: str, messages: list[StoredMessage]) -> None:
        payload = [m.to_dict() for m in messages]
        async with self.db.session() as db:
            state = await db.get(ThreadState, thread_id)
            if state is None:
                db.add(ThreadState(thread_id=thread_id, messages=payload))
            else:
                state.messages = payload
            await db.commit()
