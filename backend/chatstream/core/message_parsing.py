"""Inbound Message Parsing — normalizes any accepted `message` payload into one canonical message.

Invariants:
    - Precedence is fixed: content-block array → structured object → plain string
    - Structured objects try, in order: canonical stored message → own `content`
      (string, then first text block) → `kwargs.content`
    - The session-name candidate of a block array is the concatenation of every
      `type == "text"` block; non-text blocks (images, files) are ignored
    - No recoverable text → InvalidMessageError; None / empty string → InvalidMessageError
    - Pure: no IO, deterministic except for freshly generated message ids

Design Decisions:
    - Ordered tuple of small parser variants, each returning ParseResult
      (text + message, or failure reason) instead of nested probing — every
      branch is independently testable and the precedence lives in one place
    - The first failure reason of the object chain is kept as debug info only;
      the user-facing detail always names the missing `content` field
"""

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from chatstream.core.errors import InvalidMessageError, ErrorContext
from chatstream.core.stored_messages import (
    StoredMessage, first_text, human_message, stored_message_from_dict,
)

MISSING_CONTENT_DETAIL = "消息对象缺少 content 字段"
EMPTY_MESSAGE_DETAIL = "message 不能为空"


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one parser variant."""
    text: str | None = None
    message: StoredMessage | None = None
    failure: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.message is not None


@dataclass(frozen=True)
class InboundMessage:
    """Normalized inbound turn: canonical message + session-name candidate."""
    message: StoredMessage
    session_name: str


def _failed(reason: str) -> ParseResult:
    return ParseResult(failure=reason)


# -- Object variants (tried in order) ------------------------------------------

def _object_canonical(payload: dict) -> ParseResult:
    try:
        stored = stored_message_from_dict(payload)
    except ValidationError as e:
        return _failed(f"canonical: {e.error_count()} validation error(s)")
    text = first_text(stored.data.content)
    if text is None:
        return _failed("canonical: no text block")
    return ParseResult(text=text, message=human_message(stored.data.content, stored.data.id))


def _object_content(payload: dict) -> ParseResult:
    content = payload.get("content")
    if isinstance(content, str) and content:
        return ParseResult(text=content, message=human_message(content))
    return _failed("content: not a non-empty string")


def _object_content_blocks(payload: dict) -> ParseResult:
    content = payload.get("content")
    if not isinstance(content, list):
        return _failed("content: not a block list")
    text = first_text(content)
    if not text:
        return _failed("content: no text block")
    return ParseResult(text=text, message=human_message(content))


def _object_kwargs_content(payload: dict) -> ParseResult:
    kwargs = payload.get("kwargs")
    content = kwargs.get("content") if isinstance(kwargs, dict) else None
    text = first_text(content)
    if not text:
        return _failed("kwargs.content: absent")
    return ParseResult(text=text, message=human_message(content))


OBJECT_VARIANTS: tuple[Callable[[dict], ParseResult], ...] = (
    _object_canonical,
    _object_content,
    _object_content_blocks,
    _object_kwargs_content,
)


# -- Top-level shapes ----------------------------------------------------------

def parse_blocks(payload: list) -> ParseResult:
    """Content-block array. Bare strings are promoted to text blocks."""
    blocks: list[dict] = []
    for block in payload:
        if isinstance(block, str):
            blocks.append({"type": "text", "text": block})
        elif isinstance(block, dict):
            blocks.append(block)
        else:
            return _failed(f"blocks: unsupported element {type(block).__name__}")
    if not blocks:
        return _failed("blocks: empty array")
    name = "".join(
        str(b.get("text") or "") for b in blocks if b.get("type") == "text"
    )
    return ParseResult(text=name, message=human_message(blocks))


def parse_object(payload: dict) -> ParseResult:
    """Structured stored-message object — first successful variant wins."""
    reasons = []
    for variant in OBJECT_VARIANTS:
        result = variant(payload)
        if result.ok:
            return result
        reasons.append(result.failure)
    return _failed("; ".join(r for r in reasons if r))


def parse_text(payload: str) -> ParseResult:
    if not payload:
        return _failed("text: empty string")
    return ParseResult(text=payload, message=human_message(payload))


def normalize_inbound(payload: Any, thread_id: str | None = None) -> InboundMessage:
    """Normalize a decoded `message` field. Raises InvalidMessageError."""
    ctx = ErrorContext(thread_id=thread_id)
    if isinstance(payload, list):
        result = parse_blocks(payload)
        detail = EMPTY_MESSAGE_DETAIL
    elif isinstance(payload, dict):
        result = parse_object(payload)
        detail = MISSING_CONTENT_DETAIL
    elif isinstance(payload, str):
        result = parse_text(payload)
        detail = EMPTY_MESSAGE_DETAIL
    else:
        raise InvalidMessageError(EMPTY_MESSAGE_DETAIL, ctx)

    if not result.ok:
        ctx.debug_info = {"reason": result.failure}
        raise InvalidMessageError(detail, ctx)
    return InboundMessage(message=result.message, session_name=result.text or "")
