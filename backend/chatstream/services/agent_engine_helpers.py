"""Agent Engine Helpers — pure conversions between stored messages and the Anthropic API.

Invariants:
    - All functions are pure (stateless, deterministic)
    - to_anthropic_messages output strictly alternates user/assistant roles
    - Consecutive tool messages collapse into ONE user message of tool_result blocks
    - System messages never reach the messages array (system prompt is separate)

Design Decisions:
    - Stored history is provider-neutral ({"type","data"}); the Anthropic shape is
      rebuilt on every call rather than persisted (ADR: history readable by the
      browser hydrator without knowing the provider)
    - Same-role neighbours are merged into a block list instead of dropped: a turn
      that failed before the model answered must not lose the user's text
"""

from typing import Any

from chatstream.core.domain_types import StoredMessageType
from chatstream.core.stored_messages import StoredMessage, ai_message


def token_from_stream_event(event: Any) -> str | None:
    """Text of a content_block_delta/text_delta event, else None."""
    if getattr(event, "type", None) != "content_block_delta":
        return None
    delta = getattr(event, "delta", None)
    if getattr(delta, "type", None) != "text_delta":
        return None
    return getattr(delta, "text", None) or ""


def ai_message_from_response(response: Any) -> StoredMessage:
    """Stored AI message (text + tool calls) from a final SDK Message."""
    texts, tool_calls = [], []
    for block in response.content:
        btype = getattr(block, "type", None)
        if btype == "text":
            texts.append(block.text)
        elif btype == "tool_use":
            tool_calls.append({
                "id": block.id, "name": block.name, "args": dict(block.input or {}),
            })
    return ai_message("".join(texts), tool_calls)


def _as_blocks(content: str | list) -> list[dict]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    return list(content)


def _to_anthropic(msg: StoredMessage) -> dict | None:
    data = msg.data
    if msg.type == StoredMessageType.HUMAN:
        return {"role": "user", "content": data.content}
    if msg.type == StoredMessageType.AI:
        blocks = _as_blocks(data.content)
        blocks += [
            {"type": "tool_use", "id": c.id, "name": c.name, "input": c.args}
            for c in data.tool_calls
        ]
        return {"role": "assistant", "content": blocks}
    if msg.type == StoredMessageType.TOOL:
        return {
            "role": "user",
            "content": [{
                "type": "tool_result",
                "tool_use_id": data.tool_call_id,
                "content": msg.text,
                "is_error": data.status == "error",
            }],
        }
    return None


def to_anthropic_messages(history: list[StoredMessage]) -> list[dict]:
    """Build the Anthropic messages array from stored history."""
    out: list[dict] = []
    for msg in history:
        converted = _to_anthropic(msg)
        if converted is None or not converted["content"]:
            continue
        if out and out[-1]["role"] == converted["role"]:
            merged = _as_blocks(out[-1]["content"]) + _as_blocks(converted["content"])
            out[-1] = {"role": converted["role"], "content": merged}
        else:
            out.append(converted)
    return out
