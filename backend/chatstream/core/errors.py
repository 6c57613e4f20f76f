"""Error Hierarchy — typed, categorized exceptions for every chat failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Input errors (400-level) are user-correctable; infrastructure errors (500-level) are not
    - to_response() produces the flat REST body {error, detail?}
    - No internal details leaked in user-facing messages (detail is opt-in per error)

Design Decisions:
    - Single hierarchy with ChatError base: FastAPI global handler catches all (ADR: uniform error shape)
    - Flat {error, detail} wire body: the browser client reads `error` directly
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


GENERIC_ERROR_MESSAGE = "服务器内部错误"
INVALID_MESSAGE_ERROR = "无效的消息格式"


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    MISSING_PARAMETER = "missing_parameter"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    thread_id: str | None = None
    tool_name: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class ChatError(Exception):
    """Base exception for all chat service errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status
        self.detail = detail

    def to_response(self) -> dict:
        """Convert to the flat REST error body."""
        body: dict[str, Any] = {"error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


# ─── Input Errors (400-level) ───────────────────────────────────

class InvalidMessageError(ChatError):
    """Inbound chat message has no recoverable text."""
    def __init__(self, detail: str | None = None, context: ErrorContext | None = None):
        super().__init__(
            INVALID_MESSAGE_ERROR, "INVALID_MESSAGE", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400, detail,
        )


class MissingParameterError(ChatError):
    """Required request field absent (e.g. id on delete/rename)."""
    def __init__(self, message: str, parameter: str, context: ErrorContext | None = None):
        super().__init__(
            message, "MISSING_PARAMETER", ErrorCategory.MISSING_PARAMETER,
            ErrorSeverity.WARNING, context, 400,
        )
        self.parameter = parameter


class ToolExecutionError(ChatError):
    """A tool rejected its input or failed while running."""
    def __init__(self, message: str, tool_name: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.tool_name = tool_name
        super().__init__(
            message, "TOOL_EXECUTION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, ctx, 400,
        )
        self.tool_name = tool_name


# ─── Infrastructure Errors (500-level) ──────────────────────────

class MalformedRequestError(ChatError):
    """Request body could not be parsed as JSON."""
    def __init__(
        self, message: str = GENERIC_ERROR_MESSAGE, detail: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "MALFORMED_REQUEST", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, context, 500, detail,
        )


class SessionOperationError(ChatError):
    """A session CRUD route failed; carries the route-specific message."""
    def __init__(
        self, message: str, detail: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "SESSION_OPERATION_FAILED", ErrorCategory.DATABASE,
            ErrorSeverity.ERROR, context, 500, detail,
        )


class DatabaseError(ChatError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.operation = operation


class AnthropicAPIError(ChatError):
    """Anthropic API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Anthropic API error ({api_error_type}): {message}",
            "ANTHROPIC_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type


class AgentLoopExceededError(ChatError):
    """Agent exceeded maximum iteration limit."""
    def __init__(self, max_iterations: int, context: ErrorContext | None = None):
        super().__init__(
            f"Agent exceeded maximum iteration limit ({max_iterations})",
            "AGENT_LOOP_EXCEEDED", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )


# ─── Client Errors ──────────────────────────────────────────────

class ChatClientError(ChatError):
    """Client-side request failed (network error or non-2xx status)."""
    def __init__(
        self, message: str, status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(
            message, "CLIENT_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, None, status_code or 500, detail,
        )
        self.status_code = status_code


class TurnInProgressError(ChatError):
    """A second turn was started while one is still streaming."""
    def __init__(self):
        super().__init__(
            "A turn is already in progress", "TURN_IN_PROGRESS",
            ErrorCategory.VALIDATION, ErrorSeverity.WARNING, None, 409,
        )
