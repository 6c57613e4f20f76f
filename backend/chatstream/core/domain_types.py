"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - All valid wire tags encoded as Enums — no raw string matching in reducers
    - Session auto-names are at most SESSION_NAME_MAX_LENGTH characters

Design Decisions:
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum


# ─── Constants ───────────────────────────────────────────────────

SESSION_NAME_MAX_LENGTH = 20
DEFAULT_SESSION_NAME_PREFIX = "新会话-"
UNKNOWN_TOOL_ERROR = "未知错误"


# ─── Enums ───────────────────────────────────────────────────────

class MessageRole(str, Enum):
    """Roles a rendered message can take."""
    USER = "user"
    ASSISTANT = "assistant"


class StoredMessageType(str, Enum):
    """Type tags of persisted (canonical) messages."""
    HUMAN = "human"
    AI = "ai"
    TOOL = "tool"
    SYSTEM = "system"


class StreamEventType(str, Enum):
    """Tags of the newline-delimited stream protocol."""
    SESSION = "session"
    CHUNK = "chunk"
    TOOL_CALLS = "tool_calls"
    TOOL_RESULT = "tool_result"
    TOOL_ERROR = "tool_error"
    END = "end"
    ERROR = "error"


def default_session_name(thread_id: str) -> str:
    """Name given to a session created without one."""
    return f"{DEFAULT_SESSION_NAME_PREFIX}{thread_id[:8]}"
