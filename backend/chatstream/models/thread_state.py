"""ThreadState ORM — the agent engine's persisted message log per thread.

Invariants:
    - thread_id matches ChatSession.id when the thread has a session record
    - messages holds canonical stored messages ({"type", "data"}) in order

Design Decisions:
    - JSON column for messages: stored-message dicts kept as-is, validated on
      read by core/stored_messages.py
    - Separate table from sessions: a thread can exist before/without a
      session record (client-supplied ids)
"""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from chatstream.db.base import Base


class ThreadState(Base):
    """Engine checkpoint — full stored message history of one thread."""
    __tablename__ = "thread_states"

    thread_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    messages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
