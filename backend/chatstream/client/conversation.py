"""Conversation — reducer that folds stream events into the rendered message list.

Invariants:
    - At most one streaming placeholder; events with no placeholder are ignored
    - chunk text is appended, never replaced
    - A staged thread id (from `session`) is committed only on `end`; a failed
      turn leaves it staged for the caller to adopt
    - `end` and `error` both clear is_loading; `error` replaces the placeholder
      with one error entry
    - Tool results/errors attributed by call id, falling back to name

Design Decisions:
    - Two-phase thread activation: `end` commits the id while the stream is
      still open; after a failure the server record already exists, so the
      facade adopts the staged id once the stream has closed
    - Handler table keyed by StreamEventType instead of an if/elif ladder;
      unknown types are logged and dropped so newer servers stay readable
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from chatstream.client.config import DEFAULT_ERROR_REPLY
from chatstream.core.domain_types import MessageRole, StreamEventType, UNKNOWN_TOOL_ERROR
from chatstream.core.messages import ChatMessage, ToolCall

logger = logging.getLogger(__name__)


def tool_output_from_event(event: dict) -> Any:
    """Output = data.output when present, else data itself."""
    data = event.get("data")
    if isinstance(data, dict) and "output" in data:
        return data["output"]
    if data is None and "output" in event:
        return event["output"]
    return data


def tool_error_from_event(event: dict) -> str:
    """Error = data.error.message | data.error | data | event.error | 未知错误."""
    data = event.get("data")
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            if err.get("message"):
                return str(err["message"])
        elif err:
            return str(err)
    elif isinstance(data, str) and data:
        return data
    if event.get("error"):
        return str(event["error"])
    return UNKNOWN_TOOL_ERROR


def _tool_calls(raw: Any) -> list[ToolCall]:
    if not isinstance(raw, list):
        return []
    return [ToolCall.from_dict(c) for c in raw if isinstance(c, dict)]


@dataclass
class Conversation:
    """Rendered conversation plus the state of the turn in flight."""

    messages: list[ChatMessage] = field(default_factory=list)
    is_loading: bool = False
    pending_thread_id: str | None = None
    committed_thread_id: str | None = None
    placeholder_id: str | None = None
    error_message: str = DEFAULT_ERROR_REPLY

    def reset(self, messages: list[ChatMessage] | None = None) -> None:
        self.messages = list(messages or [])
        self.is_loading = False
        self.pending_thread_id = None
        self.placeholder_id = None

    @property
    def placeholder(self) -> ChatMessage | None:
        if self.placeholder_id is None:
            return None
        return next((m for m in self.messages if m.id == self.placeholder_id), None)

    def add_user_message(self, content: str | list[dict]) -> ChatMessage:
        message = ChatMessage(role=MessageRole.USER, content=content)
        self.messages.append(message)
        return message

    def start_turn(self) -> ChatMessage:
        """Append the streaming assistant placeholder and mark loading."""
        placeholder = ChatMessage(role=MessageRole.ASSISTANT, is_streaming=True)
        self.messages.append(placeholder)
        self.placeholder_id = placeholder.id
        self.is_loading = True
        self.pending_thread_id = None
        self.committed_thread_id = None
        return placeholder

    def apply(self, event: dict) -> str | None:
        """Fold one event. Returns the thread id committed by `end`, if any."""
        try:
            kind = StreamEventType(event.get("type"))
        except ValueError:
            logger.warning("Ignoring unknown stream event %r", event.get("type"))
            return None
        if kind == StreamEventType.SESSION:
            self.pending_thread_id = event.get("thread_id") or None
            return None
        placeholder = self.placeholder
        if placeholder is None:
            logger.warning("Ignoring %s event with no streaming message", kind.value,
                extra={"event_type": kind.value})
            return None
        return self._handlers()[kind](placeholder, event)

    def take_staged_thread_id(self) -> str | None:
        """Pop the id staged by `session` that `end` never committed."""
        staged, self.pending_thread_id = self.pending_thread_id, None
        return staged

    def fail(self, message: str | None = None) -> None:
        """Replace the placeholder with an error entry and end the turn."""
        entry = ChatMessage(
            role=MessageRole.ASSISTANT, content=message or self.error_message,
            is_error=True,
        )
        placeholder = self.placeholder
        if placeholder is not None:
            entry.id = placeholder.id
            index = self.messages.index(placeholder)
            self.messages[index] = entry
        else:
            self.messages.append(entry)
        self.placeholder_id = None
        self.is_loading = False

    # -- handlers --------------------------------------------------------------

    def _handlers(self) -> dict[StreamEventType, Callable[[ChatMessage, dict], str | None]]:
        return {
            StreamEventType.CHUNK: self._on_chunk,
            StreamEventType.TOOL_CALLS: self._on_tool_calls,
            StreamEventType.TOOL_RESULT: self._on_tool_result,
            StreamEventType.TOOL_ERROR: self._on_tool_error,
            StreamEventType.END: self._on_end,
            StreamEventType.ERROR: self._on_error,
        }

    def _on_chunk(self, placeholder: ChatMessage, event: dict) -> None:
        content = event.get("content")
        if isinstance(content, str) and content:
            placeholder.append_text(content)

    def _on_tool_calls(self, placeholder: ChatMessage, event: dict) -> None:
        placeholder.replace_tool_calls(_tool_calls(event.get("tool_calls")))

    def _find_call(self, placeholder: ChatMessage, event: dict) -> ToolCall | None:
        call = placeholder.find_tool_call(str(event.get("name") or ""), event.get("id"))
        if call is None:
            logger.warning("No tool call matches %s event", event.get("type"),
                extra={"tool_name": event.get("name")})
        return call

    def _on_tool_result(self, placeholder: ChatMessage, event: dict) -> None:
        call = self._find_call(placeholder, event)
        if call is not None:
            call.resolve(tool_output_from_event(event))

    def _on_tool_error(self, placeholder: ChatMessage, event: dict) -> None:
        call = self._find_call(placeholder, event)
        if call is not None:
            call.fail(tool_error_from_event(event))

    def _on_end(self, placeholder: ChatMessage, event: dict) -> str | None:
        message = event.get("message")
        if isinstance(message, dict):
            placeholder.merge_tool_calls(_tool_calls(message.get("tool_calls")))
        placeholder.is_streaming = False
        self.placeholder_id = None
        self.is_loading = False
        committed, self.pending_thread_id = self.pending_thread_id, None
        if committed:
            self.committed_thread_id = committed
        return committed

    def _on_error(self, placeholder: ChatMessage, event: dict) -> None:
        logger.warning("Stream ended with error: %s", event.get("error"),
            extra={"event_type": StreamEventType.ERROR.value})
        self.fail()
