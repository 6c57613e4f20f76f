"""API test fixtures — FastAPI app over an in-memory store and a scripted engine.

Invariants:
    - Store, engine and database dependencies overridden per test
    - The lifespan never runs (ASGITransport sends no lifespan events)

Design Decisions:
    - dependency_overrides instead of monkeypatching module globals
"""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from chatstream.api.dependencies import (
    get_agent_engine, get_database, get_session_store,
)
from chatstream.main import app

from tests.services.fake_engine import ScriptedEngine


@pytest.fixture
def engine():
    return ScriptedEngine()


@pytest.fixture
async def client(session_store, engine, database):
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_agent_engine] = lambda: engine
    app.dependency_overrides[get_database] = lambda: database

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


def read_lines(response) -> list[dict]:
    """Decode a newline-delimited JSON response body."""
    return [json.loads(line) for line in response.text.split("\n") if line.strip()]


@pytest.fixture
def lines():
    return read_lines
