"""Root conftest — shared test configuration and database fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database with the schema created
    - Store and thread repository share that database, like in the lifespan
"""

import os

import pytest

# Ensure tests don't accidentally use real API keys
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test-fake-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from chatstream.infrastructure.database import DatabaseSessionManager  # noqa: E402
from chatstream.services.session_store import SqlSessionStore  # noqa: E402
from chatstream.services.thread_repository import ThreadRepository  # noqa: E402


@pytest.fixture
async def database():
    db = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    await db.create_schema()
    yield db
    await db.dispose()


@pytest.fixture
def session_store(database):
    return SqlSessionStore(database)


@pytest.fixture
def thread_repository(database):
    return ThreadRepository(database)
