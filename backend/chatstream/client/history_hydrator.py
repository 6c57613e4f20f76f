"""History Hydrator — rebuilds the rendered conversation from a thread's stored history.

Invariants:
    - Empty thread id → empty result, no request sent
    - Canonical parse first; any shape mismatch switches to the lenient fallback
    - Any failure (network, parse) → empty result, logged only

Design Decisions:
    - Fallback role order: type-marker array → `type` (unless "constructor") →
      data/kwargs `type` → index parity (even = user)
    - Marker arrays are never used as message ids
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from chatstream.client.api_client import ChatApiClient
from chatstream.core.domain_types import MessageRole
from chatstream.core.messages import ChatMessage, new_message_id
from chatstream.core.stored_messages import stored_messages_from_dicts, to_chat_messages

logger = logging.getLogger(__name__)

_USER_MARKERS = ("HumanMessage", "human")
_AI_MARKERS = ("AIMessage", "ai")


@dataclass
class HydrationResult:
    messages: list[ChatMessage] = field(default_factory=list)
    has_user_message: bool = False


def _marker_role(markers: Any) -> MessageRole | None:
    if not isinstance(markers, list):
        return None
    for part in markers:
        if part in _USER_MARKERS:
            return MessageRole.USER
        if part in _AI_MARKERS:
            return MessageRole.ASSISTANT
    return None


def _body(msg: dict) -> dict:
    body = msg.get("data") or msg.get("kwargs")
    return body if isinstance(body, dict) else {}


def _type_role(kind: Any) -> MessageRole | None:
    if not isinstance(kind, str) or not kind:
        return None
    return MessageRole.USER if kind in _USER_MARKERS else MessageRole.ASSISTANT


def fallback_role(msg: dict, index: int) -> MessageRole:
    role = _marker_role(msg.get("id"))
    if role is None and msg.get("type") != "constructor":
        role = _type_role(msg.get("type"))
    if role is None:
        role = _type_role(_body(msg).get("type"))
    if role is None:
        role = MessageRole.USER if index % 2 == 0 else MessageRole.ASSISTANT
    return role


def fallback_message(msg: dict, index: int) -> ChatMessage:
    body = _body(msg) or msg
    content = body.get("content") or msg.get("content") or ""
    message_id = body.get("id") or msg.get("id")
    if not isinstance(message_id, str) or not message_id:
        message_id = new_message_id()
    return ChatMessage(role=fallback_role(msg, index), content=content, id=message_id)


def hydrate_messages(raw: list) -> list[ChatMessage]:
    """Canonical deserialization, lenient reconstruction on failure."""
    try:
        return to_chat_messages(stored_messages_from_dicts(raw))
    except ValidationError as e:
        logger.warning("Canonical history parse failed, rebuilding: %s", e.error_count())
        return [fallback_message(m, i) for i, m in enumerate(raw) if isinstance(m, dict)]


class HistoryHydrator:
    """Fetches and renders a thread's history."""

    def __init__(self, api: ChatApiClient):
        self.api = api

    async def hydrate(self, thread_id: str) -> HydrationResult:
        if not thread_id:
            return HydrationResult()
        try:
            raw = await self.api.get_history(thread_id)
            messages = hydrate_messages(raw if isinstance(raw, list) else [])
        except Exception as e:
            logger.error("History load failed: %s", e,
                extra={"thread_id": thread_id}, exc_info=True)
            return HydrationResult()
        return HydrationResult(
            messages=messages,
            has_user_message=any(m.role == MessageRole.USER for m in messages),
        )
