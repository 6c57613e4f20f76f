"""Request Dependencies — hand the lifespan-owned store and engine to handlers.

Invariants:
    - Handlers never construct stores/engines themselves
    - Everything resolved from app.state, populated once in the lifespan

Design Decisions:
    - FastAPI Depends over module globals: tests swap implementations through
      app.dependency_overrides (ADR: no global mocking)
"""

from fastapi import Request

from chatstream.core.store_protocols import AgentEngine, SessionStore
from chatstream.infrastructure.database import DatabaseSessionManager


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_agent_engine(request: Request) -> AgentEngine:
    return request.app.state.agent_engine


def get_database(request: Request) -> DatabaseSessionManager | None:
    return getattr(request.app.state, "database", None)
