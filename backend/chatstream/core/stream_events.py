"""Stream Events — builders and line codec for the newline-delimited chat stream protocol.

Invariants:
    - One event = one JSON object = one line terminated by "\n"
    - Every event has a `type` key drawn from StreamEventType
    - Non-ASCII text is emitted as UTF-8, never \\u-escaped (ensure_ascii=False)
    - Pure: builders never touch IO

Design Decisions:
    - Flat payloads ({"type": "chunk", "content": ...}) rather than a nested
      data envelope: the browser client reads fields directly off the line
    - tool_result / tool_error carry an optional `id` so the reducer can
      attribute results by tool-call id, falling back to name when absent
"""

import json
from typing import Any

from chatstream.core.domain_types import StreamEventType
from chatstream.core.errors import GENERIC_ERROR_MESSAGE


def session_event(thread_id: str) -> dict:
    return {"type": StreamEventType.SESSION.value, "thread_id": thread_id}


def chunk_event(content: str) -> dict:
    return {"type": StreamEventType.CHUNK.value, "content": content}


def tool_calls_event(tool_calls: list[dict]) -> dict:
    return {"type": StreamEventType.TOOL_CALLS.value, "tool_calls": tool_calls}


def tool_result_event(name: str, data: Any, call_id: str | None = None) -> dict:
    event = {"type": StreamEventType.TOOL_RESULT.value, "name": name, "data": data}
    if call_id:
        event["id"] = call_id
    return event


def tool_error_event(name: str, data: Any, call_id: str | None = None) -> dict:
    event = {"type": StreamEventType.TOOL_ERROR.value, "name": name, "data": data}
    if call_id:
        event["id"] = call_id
    return event


def end_event(
    thread_id: str, messages: list[dict], message: dict | None = None,
    status: str = "success",
) -> dict:
    return {
        "type": StreamEventType.END.value,
        "thread_id": thread_id,
        "status": status,
        "messages": messages,
        "message": message,
    }


def error_event(error: str = GENERIC_ERROR_MESSAGE, detail: str | None = None) -> dict:
    event = {"type": StreamEventType.ERROR.value, "error": error}
    if detail is not None:
        event["detail"] = detail
    return event


def encode_line(event: dict) -> str:
    """Serialize one event as a protocol line."""
    return json.dumps(event, ensure_ascii=False, default=str) + "\n"
