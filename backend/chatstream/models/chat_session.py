"""ChatSession ORM — one durable record per conversation thread.

Invariants:
    - id is the opaque thread id (text primary key, caller- or server-generated)
    - name is free text; auto-naming is a client concern
    - created_at set on insert; listing order is created_at descending

Design Decisions:
    - Text primary key instead of UUID column: thread ids are opaque strings
      supplied by the client or the stream encoder
    - No relationship to ThreadState: the agent engine owns message history,
      the session store owns the sidebar projection (ADR: CRUD-only store)
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from chatstream.db.base import Base


class ChatSession(Base):
    """Session record — sidebar projection of a thread."""
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }
