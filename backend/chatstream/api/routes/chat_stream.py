"""Chat Stream — POST /chat streams one agent turn; GET /chat serves metadata or history.

Invariants:
    - Body parsed and message normalized BEFORE any session record or stream exists
    - Malformed body → 500 {error}; invalid message → 400 {error, detail}
    - No thread_id → uuid4 thread, session record created exactly once with the
      extracted text as name, `session` line emitted first
    - Existing thread_id → no session record, no `session` line
    - Response is newline-delimited JSON, text/plain; charset=utf-8, unbuffered

Design Decisions:
    - Manual request.json() instead of a Pydantic body model: the message field
      is polymorphic (string | blocks | object) and malformed JSON must map to 500,
      not to FastAPI's 422
    - StreamingResponse over an async generator; the encoder owns event mapping
"""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from chatstream.api.dependencies import get_agent_engine, get_session_store
from chatstream.config import get_settings
from chatstream.core.errors import (
    ErrorContext, MalformedRequestError, SessionOperationError,
)
from chatstream.core.message_parsing import normalize_inbound
from chatstream.core.store_protocols import AgentEngine, SessionStore
from chatstream.core.stream_events import encode_line
from chatstream.services.stream_encoder import StreamEncoder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])

HISTORY_ERROR = "获取历史记录失败"

# ADR: headers prevent proxy/browser buffering of streamed lines.
_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}
_STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


async def _read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError as e:
        raise MalformedRequestError(detail=str(e)) from e
    if not isinstance(body, dict):
        raise MalformedRequestError(detail="request body must be a JSON object")
    return body


def _tool_names(raw: Any) -> list[str] | None:
    if not isinstance(raw, list):
        return None
    return [t for t in raw if isinstance(t, str)]


@router.post("")
async def stream_chat(
    request: Request,
    store: SessionStore = Depends(get_session_store),
    engine: AgentEngine = Depends(get_agent_engine),
):
    """Stream one turn as newline-delimited JSON events."""
    body = await _read_body(request)
    thread_id = body.get("thread_id") or None
    inbound = normalize_inbound(body.get("message"), thread_id)

    new_session = thread_id is None
    if new_session:
        thread_id = str(uuid.uuid4())
        await store.create(thread_id, inbound.session_name)

    encoder = StreamEncoder(engine)
    tools = _tool_names(body.get("tools"))
    model = body.get("model") if isinstance(body.get("model"), str) else None

    async def line_generator():
        async for event in encoder.encode(
            thread_id, inbound, new_session=new_session,
            tools=tools, model=model,
        ):
            yield encode_line(event)

    return StreamingResponse(
        line_generator(),
        media_type=_STREAM_MEDIA_TYPE,
        headers=_STREAM_HEADERS,
    )


@router.get("")
async def chat_info(
    thread_id: str | None = None,
    engine: AgentEngine = Depends(get_agent_engine),
):
    """API metadata, or the stored history of one thread."""
    if not thread_id:
        return {
            "message": "聊天 API 正在运行",
            "version": get_settings().api_version,
            "endpoints": {
                "chat": "POST /chat",
                "history": "GET /chat?thread_id=<thread_id>",
                "sessions": "GET|POST|PATCH|DELETE /chat/sessions",
            },
        }
    try:
        history = await engine.get_history(thread_id)
    except Exception as e:
        logger.error("History fetch failed: %s", e,
            extra={"thread_id": thread_id}, exc_info=True)
        raise SessionOperationError(
            HISTORY_ERROR, context=ErrorContext(thread_id=thread_id),
        ) from e
    return {"thread_id": thread_id, "history": history}
