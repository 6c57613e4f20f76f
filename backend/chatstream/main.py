"""Chat Stream API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map ChatError → flat {error, detail?} JSON
    - CORS configured from settings (not hardcoded)
    - Session store, thread repository and agent engine opened once in the
      lifespan, placed on app.state, closed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Store and engine share one DatabaseSessionManager (one pool per process)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatstream.api.error_handlers import register_error_handlers
from chatstream.api.routes import chat_sessions, chat_stream, health
from chatstream.config import Settings, get_settings
from chatstream.infrastructure.anthropic_client import ResilientAnthropicClient
from chatstream.infrastructure.observability import setup_logging
from chatstream.services.agent_engine import AnthropicAgentEngine
from chatstream.services.agent_tools import ToolRegistry
from chatstream.services.session_store import SqlSessionStore
from chatstream.services.thread_repository import ThreadRepository

logger = logging.getLogger(__name__)


def build_agent_engine(settings: Settings, store: SqlSessionStore) -> AnthropicAgentEngine:
    client = ResilientAnthropicClient(
        api_key=settings.anthropic_api_key,
        max_retries=settings.anthropic_max_retries,
        timeout_seconds=settings.anthropic_timeout_seconds,
    )
    return AnthropicAgentEngine(
        client=client,
        threads=ThreadRepository(store.db),
        tools=ToolRegistry(settings.enabled_tools),
        model=settings.agent_model,
        system_prompt=settings.agent_system_prompt,
        max_tokens=settings.agent_max_tokens,
        max_iterations=settings.agent_max_iterations,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    store = SqlSessionStore.open(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if settings.database_create_schema:
        await store.db.create_schema()
    app.state.database = store.db
    app.state.session_store = store
    app.state.agent_engine = build_agent_engine(settings, store)
    logger.info("Chat API started")
    yield
    logger.info("Chat API shutting down")
    await store.close()


settings = get_settings()
app = FastAPI(
    title="Chat Stream API", version=settings.api_version, lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(chat_stream.router)
app.include_router(chat_sessions.router)

register_error_handlers(app)
