"""Client test fixtures — an in-memory fake of the chat HTTP API on httpx.MockTransport.

Invariants:
    - Every request is recorded as (method, path, json body)
    - POST /chat streams the configured events as newline-delimited JSON
    - Any (method, path) in `failing` answers 500 {error, detail}
"""

import json
from itertools import count

import httpx
import pytest

from chatstream.client.api_client import ChatApiClient
from chatstream.client.chat_client import ChatClient
from chatstream.client.config import ClientSettings
from chatstream.core.stream_events import encode_line


class FakeChatServer:
    def __init__(self):
        self.sessions: list[dict] = []
        self.histories: dict[str, list] = {}
        self.stream_events: list[dict] = []
        self.stream_status = 200
        self.failing: set[tuple[str, str]] = set()
        self.requests: list[tuple[str, str, object]] = []
        self._ids = count(1)

    def calls(self, method: str, path: str) -> list:
        return [body for m, p, body in self.requests if (m, p) == (method, path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        key = (request.method, request.url.path)
        self.requests.append((*key, body))
        if key in self.failing:
            return httpx.Response(500, json={"error": "boom", "detail": "fake failure"})
        if key == ("POST", "/chat"):
            return self._stream()
        if key == ("GET", "/chat"):
            thread_id = request.url.params.get("thread_id")
            return httpx.Response(200, json={
                "thread_id": thread_id, "history": self.histories.get(thread_id, []),
            })
        if key == ("GET", "/chat/sessions"):
            return httpx.Response(200, json={"sessions": list(self.sessions)})
        if key == ("POST", "/chat/sessions"):
            new_id = f"s-{next(self._ids)}"
            self.sessions.insert(0, {"id": new_id, "name": body.get("name") or new_id})
            return httpx.Response(200, json={"id": new_id})
        if key == ("DELETE", "/chat/sessions"):
            self.sessions = [s for s in self.sessions if s["id"] != body["id"]]
            return httpx.Response(200, json={"success": True})
        if key == ("PATCH", "/chat/sessions"):
            for s in self.sessions:
                if s["id"] == body["id"]:
                    s["name"] = body["name"]
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "not found"})

    def _stream(self) -> httpx.Response:
        if self.stream_status != 200:
            return httpx.Response(self.stream_status, json={"error": "服务器内部错误"})
        for event in self.stream_events:
            if event.get("type") == "session":
                self.sessions.insert(0, {"id": event["thread_id"], "name": "from-stream"})
        payload = "".join(encode_line(e) for e in self.stream_events).encode("utf-8")
        return httpx.Response(
            200, content=payload,
            headers={"content-type": "text/plain; charset=utf-8"},
        )


@pytest.fixture
def server():
    return FakeChatServer()


@pytest.fixture
def client_settings():
    return ClientSettings(base_url="http://test", timeout_seconds=5)


@pytest.fixture
async def api(server, client_settings):
    client = ChatApiClient(client_settings, transport=httpx.MockTransport(server.handler))
    yield client
    await client.close()


@pytest.fixture
def chat(api, client_settings):
    return ChatClient(api, client_settings)
