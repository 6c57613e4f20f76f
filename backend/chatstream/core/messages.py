"""Messages — the rendered conversation shape shared by reducer and hydrator.

Invariants:
    - ChatMessage.id is stable across streaming updates (assigned once)
    - ToolCall has at most one terminal state: resolved (output) XOR failed (error)
    - Re-applying the same terminal state is a no-op; a conflicting one is ignored
    - append_text is monotonic — streamed text is never replaced

Design Decisions:
    - Mutable dataclasses: the reducer updates the placeholder in place, the way
      the browser state hook patches a message by id
    - ToolCallState enum instead of "output is not None": a tool may legitimately
      return None/null as its output
    - Wire key for tool arguments is `args` (matches the stored-message format)
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chatstream.core.domain_types import MessageRole

logger = logging.getLogger(__name__)


class ToolCallState(str, Enum):
    REQUESTED = "requested"
    RESOLVED = "resolved"
    FAILED = "failed"


def new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ToolCall:
    """One tool invocation attached to an assistant message."""

    id: str
    name: str
    args: dict = field(default_factory=dict)
    output: Any = None
    error: str | None = None
    state: ToolCallState = ToolCallState.REQUESTED

    @property
    def is_terminal(self) -> bool:
        return self.state != ToolCallState.REQUESTED

    def resolve(self, output: Any) -> bool:
        """Move to resolved. Returns True only if state changed."""
        if self.state == ToolCallState.RESOLVED and self.output == output:
            return False
        if self.is_terminal:
            logger.warning(
                "Ignoring result for already %s tool call",
                self.state.value, extra={"tool_name": self.name},
            )
            return False
        self.output = output
        self.state = ToolCallState.RESOLVED
        return True

    def fail(self, error: str) -> bool:
        """Move to failed. Returns True only if state changed."""
        if self.state == ToolCallState.FAILED and self.error == error:
            return False
        if self.is_terminal:
            logger.warning(
                "Ignoring error for already %s tool call",
                self.state.value, extra={"tool_name": self.name},
            )
            return False
        self.error = error
        self.state = ToolCallState.FAILED
        return True

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "name": self.name, "args": self.args}
        if self.state == ToolCallState.RESOLVED:
            d["output"] = self.output
        elif self.state == ToolCallState.FAILED:
            d["error"] = self.error
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "ToolCall":
        """Build from a wire/stored tool call. Accepts `args` or `arguments`."""
        args = data.get("args")
        if args is None:
            args = data.get("arguments") or {}
        call = cls(id=str(data.get("id") or ""), name=str(data.get("name") or ""), args=args)
        if "error" in data and data["error"] is not None:
            call.fail(str(data["error"]))
        elif "output" in data:
            call.resolve(data["output"])
        return call

    def _same_call(self, other: "ToolCall") -> bool:
        if self.id and other.id:
            return self.id == other.id
        return self.name == other.name


@dataclass
class ChatMessage:
    """A rendered message: plain text or ordered content blocks."""

    role: MessageRole
    content: str | list[dict] = ""
    id: str = field(default_factory=new_message_id)
    is_streaming: bool = False
    is_error: bool = False
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Plain text view — concatenates every text block."""
        if isinstance(self.content, str):
            return self.content
        parts = []
        for block in self.content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text") or ""))
        return "".join(parts)

    def append_text(self, chunk: str) -> None:
        if isinstance(self.content, str):
            self.content += chunk
            return
        if self.content and self.content[-1].get("type") == "text":
            last = self.content[-1]
            last["text"] = str(last.get("text") or "") + chunk
        else:
            self.content.append({"type": "text", "text": chunk})

    def find_tool_call(
        self, name: str, call_id: str | None = None,
    ) -> ToolCall | None:
        """Locate the call a result/error belongs to.

        Lookup order: exact id → first pending call with the name → last
        call with the name (so re-delivery hits the already-terminal call).
        """
        if call_id:
            for call in self.tool_calls:
                if call.id == call_id:
                    return call
        named = [c for c in self.tool_calls if c.name == name]
        for call in named:
            if not call.is_terminal:
                return call
        return named[-1] if named else None

    def replace_tool_calls(self, incoming: list[ToolCall]) -> None:
        """Replace the list, carrying terminal state of calls seen before."""
        self.tool_calls = [self._carry_state(c) for c in incoming]

    def merge_tool_calls(self, incoming: list[ToolCall]) -> None:
        """Add calls not yet present; existing calls keep their state."""
        for call in incoming:
            existing = next(
                (c for c in self.tool_calls if c._same_call(call)), None,
            )
            if existing is None:
                self.tool_calls.append(call)
            elif call.args and not existing.args:
                existing.args = call.args

    def _carry_state(self, call: ToolCall) -> ToolCall:
        for old in self.tool_calls:
            if old.is_terminal and old._same_call(call):
                call.output, call.error, call.state = old.output, old.error, old.state
                break
        return call

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
        }
        if self.is_streaming:
            d["isStreaming"] = True
        if self.is_error:
            d["isError"] = True
        if self.tool_calls:
            d["tool_calls"] = [c.to_dict() for c in self.tool_calls]
        return d
