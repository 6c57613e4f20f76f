"""Chat API Client — httpx wrapper over every chat endpoint.

Invariants:
    - Non-2xx responses raise ChatClientError carrying the server's {error, detail}
    - Transport failures (connect, timeout, read) raise ChatClientError, never httpx errors
    - stream_chat yields decoded events as they arrive (no whole-body buffering)

Design Decisions:
    - One shared httpx.AsyncClient per ChatApiClient (connection pooling)
    - Optional transport injection: tests pass httpx.MockTransport or ASGITransport
"""

import logging
from typing import Any, AsyncIterator

import httpx

from chatstream.client.config import ClientSettings, get_client_settings
from chatstream.client.stream_decoder import iter_events
from chatstream.core.errors import ChatClientError

logger = logging.getLogger(__name__)


def _error_from_response(response: httpx.Response) -> ChatClientError:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return ChatClientError(str(body["error"]), response.status_code, body.get("detail"))
    return ChatClientError(f"HTTP {response.status_code}", response.status_code)


class ChatApiClient:
    """Async HTTP client for the chat and session endpoints."""

    def __init__(
        self,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_client_settings()
        self.client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ChatClientError(f"{method} {url} failed: {e}") from e
        if response.is_error:
            raise _error_from_response(response)
        return response.json()

    # -- Chat ------------------------------------------------------------------

    async def stream_chat(
        self,
        message: Any,
        thread_id: str | None = None,
        tools: list[str] | None = None,
        model: str | None = None,
    ) -> AsyncIterator[dict]:
        """POST /chat and yield stream events in arrival order."""
        body: dict[str, Any] = {"message": message}
        if thread_id:
            body["thread_id"] = thread_id
        if tools is not None:
            body["tools"] = tools
        if model:
            body["model"] = model
        try:
            async with self.client.stream("POST", "/chat", json=body) as response:
                if response.is_error:
                    await response.aread()
                    raise _error_from_response(response)
                async for event in iter_events(response.aiter_bytes()):
                    yield event
        except httpx.HTTPError as e:
            raise ChatClientError(f"chat stream failed: {e}") from e

    async def get_history(self, thread_id: str) -> list:
        body = await self._request("GET", "/chat", params={"thread_id": thread_id})
        return body.get("history") or []

    # -- Sessions --------------------------------------------------------------

    async def list_sessions(self) -> list[dict]:
        body = await self._request("GET", "/chat/sessions")
        return body.get("sessions") or []

    async def create_session(self, name: str = "") -> str:
        body = await self._request("POST", "/chat/sessions", json={"name": name})
        return body["id"]

    async def delete_session(self, session_id: str) -> None:
        await self._request("DELETE", "/chat/sessions", json={"id": session_id})

    async def rename_session(self, session_id: str, name: str) -> None:
        await self._request(
            "PATCH", "/chat/sessions", json={"id": session_id, "name": name},
        )
