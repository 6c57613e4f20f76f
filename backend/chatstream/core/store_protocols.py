"""Boundary Protocols — contracts between the stream encoder and its collaborators.

Invariants:
    - The encoder and routes depend only on these Protocols, never on ORM or SDK types
    - All IO operations accessed through Protocol types
    - Implementations provided by the shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping lets tests pass plain fakes
      (ADR: no inheritance hierarchy for test doubles)
"""

from typing import AsyncIterator, Protocol

from chatstream.core.engine_events import EngineEvent
from chatstream.core.stored_messages import StoredMessage


class SessionStore(Protocol):
    """Durable keyed session records {id, name, created_at} — CRUD only."""
    async def create(self, session_id: str, name: str) -> None: ...
    async def list_all(self) -> list[dict]: ...
    async def rename(self, session_id: str, name: str) -> None: ...
    async def delete(self, session_id: str) -> None: ...


class AgentEngine(Protocol):
    """Produces the event sequence for one turn and reports thread history."""
    def stream_events(
        self,
        thread_id: str,
        message: StoredMessage,
        tools: list[str] | None = None,
        model: str | None = None,
    ) -> AsyncIterator[EngineEvent]: ...

    async def get_history(self, thread_id: str) -> list[dict]: ...
