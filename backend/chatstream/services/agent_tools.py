"""Agent Tools — explicit registry of the tools the agent engine may call.

Invariants:
    - Every tool_name -> handler mapping is visible in one dict (no auto-discovery)
    - Handlers are pure async functions taking the model's input dict
    - Bad input or runtime failure raises ToolExecutionError (never a bare Exception)
    - Unknown or disabled tools raise ToolExecutionError
    - calculator never calls eval(): it walks a whitelisted AST

Design Decisions:
    - Explicit dict over getattr: adding a tool requires editing _HANDLERS and
      TOOL_DEFINITIONS (ADR: no convention-over-config)
    - Per-request selection narrows the configured set; names outside it are ignored
"""

import ast
import operator
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chatstream.core.errors import ToolExecutionError

_MAX_EXPONENT = 100
_MAX_EXPRESSION_LENGTH = 200

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _eval_node(node: ast.AST) -> float | int:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BIN_OPS[type(node.op)](left, right)
    raise ValueError(f"unsupported syntax: {type(node).__name__}")


async def calculator(tool_input: dict) -> dict:
    expression = str(tool_input.get("expression", "")).strip()
    if not expression:
        raise ToolExecutionError("expression is required", "calculator")
    if len(expression) > _MAX_EXPRESSION_LENGTH:
        raise ToolExecutionError("expression too long", "calculator")
    try:
        result = _eval_node(ast.parse(expression, mode="eval"))
    except ZeroDivisionError:
        raise ToolExecutionError("division by zero", "calculator")
    except OverflowError:
        raise ToolExecutionError("result out of range", "calculator")
    except (SyntaxError, ValueError) as e:
        raise ToolExecutionError(f"invalid expression: {e}", "calculator")
    return {"expression": expression, "result": result}


async def current_time(tool_input: dict) -> dict:
    tz_name = tool_input.get("timezone") or "UTC"
    try:
        tz = timezone.utc if tz_name == "UTC" else ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ToolExecutionError(f"unknown timezone: {tz_name}", "current_time")
    now = datetime.now(tz)
    return {"timezone": tz_name, "iso": now.isoformat(), "weekday": now.strftime("%A")}


async def word_count(tool_input: dict) -> dict:
    text = tool_input.get("text")
    if not isinstance(text, str):
        raise ToolExecutionError("text must be a string", "word_count")
    return {"words": len(text.split()), "characters": len(text)}


_HANDLERS = {
    "calculator": calculator,
    "current_time": current_time,
    "word_count": word_count,
}

TOOL_DEFINITIONS: dict[str, dict] = {
    "calculator": {
        "name": "calculator",
        "description": "Evaluate an arithmetic expression (+ - * / // % **).",
        "input_schema": {
            "type": "object",
            "properties": {"expression": {"type": "string"}},
            "required": ["expression"],
        },
    },
    "current_time": {
        "name": "current_time",
        "description": "Current date and time in an IANA timezone (default UTC).",
        "input_schema": {
            "type": "object",
            "properties": {"timezone": {"type": "string"}},
        },
    },
    "word_count": {
        "name": "word_count",
        "description": "Count words and characters in a text.",
        "input_schema": {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    },
}


class ToolRegistry:
    """Routes tool_name -> handler for the configured tool set."""

    def __init__(self, enabled: list[str] | None = None):
        names = enabled if enabled is not None else list(_HANDLERS)
        self._handlers = {n: _HANDLERS[n] for n in names if n in _HANDLERS}

    def names(self) -> list[str]:
        return list(self._handlers)

    def select(self, requested: list[str] | None) -> list[str]:
        """Narrow to the request's tool list; empty/None keeps everything."""
        if not requested:
            return self.names()
        return [n for n in requested if n in self._handlers]

    def definitions(self, names: list[str]) -> list[dict]:
        return [TOOL_DEFINITIONS[n] for n in names if n in self._handlers]

    async def execute(self, tool_name: str, tool_input: dict) -> dict:
        handler = self._handlers.get(tool_name)
        if handler is None:
            raise ToolExecutionError(f"Tool '{tool_name}' does not exist.", tool_name)
        return await handler(tool_input or {})
