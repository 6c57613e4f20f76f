"""Stored Messages — canonical persisted message format and its deserialization.

Invariants:
    - A stored message is {"type": human|ai|tool|system, "data": {"content", "id", ...}}
    - Canonical deserialization is strict: any shape mismatch raises pydantic.ValidationError
    - Tool messages never surface as rendered messages — their output folds into
      the matching ToolCall of the preceding assistant message
    - System messages are skipped when rendering

Design Decisions:
    - Pydantic models are the single canonical parser, shared by the server
      (inbound object messages, engine history) and the client hydrator
    - extra="allow" on data: provider-specific keys survive a round trip
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chatstream.core.domain_types import MessageRole, StoredMessageType
from chatstream.core.messages import ChatMessage, ToolCall, new_message_id


class StoredToolCall(BaseModel):
    """Tool call as recorded on an AI message."""
    id: str = ""
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class StoredMessageData(BaseModel):
    model_config = ConfigDict(extra="allow")

    content: str | list[dict[str, Any]]
    id: str | None = None
    tool_calls: list[StoredToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None
    status: str | None = None


class StoredMessage(BaseModel):
    """Canonical persisted message."""
    type: StoredMessageType
    data: StoredMessageData

    @property
    def text(self) -> str:
        """First text recoverable from content (string or first text block)."""
        return first_text(self.data.content) or ""

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# -- Builders ------------------------------------------------------------------

def human_message(content: str | list[dict], message_id: str | None = None) -> StoredMessage:
    return StoredMessage(
        type=StoredMessageType.HUMAN,
        data=StoredMessageData(content=content, id=message_id or new_message_id()),
    )


def ai_message(
    content: str | list[dict], tool_calls: list[dict] | None = None,
    message_id: str | None = None,
) -> StoredMessage:
    return StoredMessage(
        type=StoredMessageType.AI,
        data=StoredMessageData(
            content=content,
            id=message_id or new_message_id(),
            tool_calls=[StoredToolCall(**c) for c in tool_calls or []],
        ),
    )


def tool_message(
    content: str, tool_call_id: str, name: str, is_error: bool = False,
) -> StoredMessage:
    return StoredMessage(
        type=StoredMessageType.TOOL,
        data=StoredMessageData(
            content=content,
            id=new_message_id(),
            tool_call_id=tool_call_id,
            name=name,
            status="error" if is_error else "success",
        ),
    )


# -- Canonical deserialization -------------------------------------------------

def stored_message_from_dict(raw: Any) -> StoredMessage:
    """Strict parse of one stored message. Raises ValidationError."""
    return StoredMessage.model_validate(raw)


def stored_messages_from_dicts(raw: list) -> list[StoredMessage]:
    return [stored_message_from_dict(m) for m in raw]


def first_text(content: Any) -> str | None:
    """String content, or the text of the first text block."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    return text
    return None


def to_chat_messages(stored: list[StoredMessage]) -> list[ChatMessage]:
    """Render stored history as user/assistant messages."""
    rendered: list[ChatMessage] = []
    for msg in stored:
        if msg.type == StoredMessageType.HUMAN:
            rendered.append(ChatMessage(
                role=MessageRole.USER, content=msg.data.content,
                id=msg.data.id or new_message_id(),
            ))
        elif msg.type == StoredMessageType.AI:
            rendered.append(ChatMessage(
                role=MessageRole.ASSISTANT, content=msg.data.content,
                id=msg.data.id or new_message_id(),
                tool_calls=[
                    ToolCall(id=c.id, name=c.name, args=c.args)
                    for c in msg.data.tool_calls
                ],
            ))
        elif msg.type == StoredMessageType.TOOL:
            _fold_tool_output(rendered, msg)
    return rendered


def _fold_tool_output(rendered: list[ChatMessage], msg: StoredMessage) -> None:
    """Attach a tool message's output to the assistant call that requested it."""
    for prior in reversed(rendered):
        if prior.role != MessageRole.ASSISTANT:
            continue
        call = prior.find_tool_call(msg.data.name or "", msg.data.tool_call_id)
        if call is None:
            return
        content = msg.data.content
        if msg.data.status == "error":
            call.fail(first_text(content) or str(content))
        else:
            call.resolve(_decode_tool_content(content))
        return


def _decode_tool_content(content: Any) -> Any:
    """Tool output is persisted as JSON text; decode it when possible."""
    if not isinstance(content, str):
        return content
    try:
        return json.loads(content)
    except ValueError:
        return content
