"""Engine Events — the generic event sequence an agent engine produces for one turn.

Invariants:
    - A turn is a finite, ordered sequence ending with exactly one TurnComplete
    - ModelTurnEnd carries the tool calls the model requested (possibly none)
    - ToolResult / ToolFailure carry the tool-call id when the engine knows it

Design Decisions:
    - Frozen dataclasses over dicts: the encoder pattern-matches on type, not on
      magic string keys (ADR: no raw string matching)
    - Engine-agnostic: any engine (Anthropic loop, test double) speaks this protocol
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ModelToken:
    """One streamed model token (may be empty — dropped by the encoder)."""
    content: str


@dataclass(frozen=True)
class ModelTurnEnd:
    """Model finished one response; tool_calls are [{id, name, args}]."""
    message_id: str
    content: str | list = ""
    tool_calls: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class ToolResult:
    name: str
    output: Any
    input: dict = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True)
class ToolFailure:
    name: str
    error: str
    input: dict = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True)
class TurnComplete:
    """Engine finished the turn and persisted the thread state."""
    thread_id: str


EngineEvent = Union[ModelToken, ModelTurnEnd, ToolResult, ToolFailure, TurnComplete]
