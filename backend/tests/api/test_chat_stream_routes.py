"""POST /chat and GET /chat — streaming turns, bootstrap, and request errors.

Invariants:
    - No thread_id → `session` first + one session record named by the extracted text
    - thread_id given → no `session`, no record
    - Malformed body → 500, invalid message → 400, neither creates a record
    - Engine failure → 200 stream ending in one `error` line
    - Client disconnect cancels the body iterator (not swallowed by the route)
"""

import asyncio
import json

import pytest
from starlette.requests import Request

from chatstream.api.routes.chat_stream import stream_chat
from chatstream.core.engine_events import (
    ModelToken, ModelTurnEnd, ToolFailure, ToolResult, TurnComplete,
)

from tests.services.fake_engine import ScriptedEngine


def _json_request(body: dict) -> Request:
    payload = json.dumps(body).encode("utf-8")

    async def receive():
        return {"type": "http.request", "body": payload, "more_body": False}

    scope = {
        "type": "http", "method": "POST", "path": "/chat", "query_string": b"",
        "headers": [(b"content-type", b"application/json")],
    }
    return Request(scope, receive)


async def test_new_thread_bootstrap(client, engine, session_store, lines):
    engine.events = [ModelToken("hi"), ModelTurnEnd("m1", "hi"), TurnComplete("x")]

    res = await client.post("/chat", json={"message": "hello world"})

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")
    assert res.headers["cache-control"] == "no-cache"
    assert res.headers["x-accel-buffering"] == "no"
    events = lines(res)
    assert events[0]["type"] == "session"
    thread_id = events[0]["thread_id"]
    assert thread_id
    assert events[-1]["type"] == "end"
    assert events[-1]["thread_id"] == thread_id

    sessions = await session_store.list_all()
    assert [(s["id"], s["name"]) for s in sessions] == [(thread_id, "hello world")]
    assert engine.calls[0]["thread_id"] == thread_id


async def test_block_message_names_session_from_text(client, engine, session_store, lines):
    engine.events = [TurnComplete("x")]

    res = await client.post("/chat", json={"message": [{"type": "text", "text": "T"}]})

    assert lines(res)[0]["type"] == "session"
    assert (await session_store.list_all())[0]["name"] == "T"


async def test_long_first_message_name_is_not_truncated(client, engine, session_store):
    engine.events = [TurnComplete("x")]
    text = "这是一条非常非常非常非常非常非常非常长的第一条消息"

    await client.post("/chat", json={"message": text})

    assert (await session_store.list_all())[0]["name"] == text


async def test_existing_thread_no_session_event(client, engine, session_store, lines):
    engine.events = [ModelToken("你"), ModelToken("好"), TurnComplete("t-1")]

    res = await client.post("/chat", json={"message": "hi", "thread_id": "t-1"})

    events = lines(res)
    assert [e["type"] for e in events] == ["chunk", "chunk", "end"]
    assert "".join(e["content"] for e in events[:2]) == "你好"
    assert await session_store.list_all() == []


async def test_chinese_text_is_not_escaped(client, engine):
    engine.events = [ModelToken("你好"), TurnComplete("t-1")]
    res = await client.post("/chat", json={"message": "hi", "thread_id": "t-1"})
    assert "你好" in res.content.decode("utf-8")


async def test_tool_events_streamed(client, engine, lines):
    engine.events = [
        ModelTurnEnd("m1", "", [{"id": "c1", "name": "calculator", "args": {}}]),
        ToolResult("calculator", {"result": 1}, {}, "c1"),
        ToolFailure("calculator", "bad", {}, "c2"),
        TurnComplete("t-1"),
    ]
    res = await client.post("/chat", json={"message": "hi", "thread_id": "t-1"})
    assert [e["type"] for e in lines(res)] == ["tool_calls", "tool_result", "tool_error", "end"]


async def test_engine_failure_streams_error(client, engine, lines):
    engine.events = [RuntimeError("boom")]

    res = await client.post("/chat", json={"message": "hi", "thread_id": "t-1"})

    assert res.status_code == 200
    assert lines(res) == [{"type": "error", "error": "服务器内部错误"}]


async def test_tools_and_model_options_forwarded(client, engine):
    engine.events = [TurnComplete("t-1")]
    await client.post("/chat", json={
        "message": "hi", "thread_id": "t-1",
        "tools": ["calculator", 3], "model": "claude-x",
    })
    assert engine.calls[0]["tools"] == ["calculator"]
    assert engine.calls[0]["model"] == "claude-x"


async def test_object_without_content_is_400(client, session_store):
    res = await client.post("/chat", json={"message": {"foo": "bar"}})

    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "无效的消息格式"
    assert "content" in body["detail"]
    assert await session_store.list_all() == []


async def test_missing_message_is_400(client):
    res = await client.post("/chat", json={"thread_id": "t-1"})
    assert res.status_code == 400


async def test_malformed_json_is_500(client, engine, session_store):
    res = await client.post(
        "/chat", content=b"{not json", headers={"content-type": "application/json"},
    )

    assert res.status_code == 500
    assert res.json()["error"] == "服务器内部错误"
    assert await session_store.list_all() == []
    assert engine.calls == []


async def test_metadata_without_thread_id(client):
    res = await client.get("/chat")
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "聊天 API 正在运行"
    assert body["version"] == "1.0.0"
    assert "history" in body["endpoints"]


async def test_history_for_thread(client, engine):
    engine.history = [{"type": "human", "data": {"content": "hi"}}]
    res = await client.get("/chat", params={"thread_id": "t-1"})
    assert res.json() == {"thread_id": "t-1", "history": engine.history}


async def test_history_failure_is_500(client, engine):
    engine.history_error = RuntimeError("db down")
    res = await client.get("/chat", params={"thread_id": "t-1"})
    assert res.status_code == 500
    assert res.json() == {"error": "获取历史记录失败"}


async def test_disconnect_cancellation_reaches_response(session_store):
    engine = ScriptedEngine([ModelToken("a"), asyncio.CancelledError()])
    response = await stream_chat(
        _json_request({"message": "hi", "thread_id": "t-1"}),
        store=session_store, engine=engine,
    )

    received = []
    with pytest.raises(asyncio.CancelledError):
        async for line in response.body_iterator:
            received.append(line)

    assert [json.loads(line)["type"] for line in received] == ["chunk"]
    assert engine.closed
