"""Stream Encoder — turns one agent-engine turn into newline-delimited protocol lines.

Invariants:
    - At most one `session` line, always first, only for a freshly created thread
    - Exactly one terminal line (`end` or `error`), always last
    - Engine event order preserved: no reordering, no batching across tool boundaries
    - Empty model tokens never reach the wire
    - Any engine failure (mid-iteration or on the final history fetch) → one
      `error` line with the generic message, then the generator returns
    - Client disconnect (CancelledError) is logged and re-raised so the engine
      generator is closed

Design Decisions:
    - Encoder is pure orchestration over the AgentEngine Protocol: the route
      owns request parsing and session bootstrap (ADR: encoder testable with a
      scripted fake engine, no HTTP involved)
    - `end.message` is the last model turn with its trailing tool_calls, so a
      reader that missed a tool_calls line can still reconcile its state
"""

import asyncio
import logging
from typing import AsyncIterator

from chatstream.core.engine_events import (
    EngineEvent, ModelToken, ModelTurnEnd, ToolFailure, ToolResult, TurnComplete,
)
from chatstream.core.message_parsing import InboundMessage
from chatstream.core.store_protocols import AgentEngine
from chatstream.core.stream_events import (
    chunk_event, end_event, error_event, session_event, tool_calls_event,
    tool_error_event, tool_result_event,
)

logger = logging.getLogger(__name__)


def _turn_to_dict(turn: ModelTurnEnd) -> dict:
    return {
        "id": turn.message_id,
        "type": "ai",
        "content": turn.content,
        "tool_calls": list(turn.tool_calls),
    }


def map_engine_event(event: EngineEvent) -> dict | None:
    """Wire event for one intermediate engine event (None = nothing to emit)."""
    if isinstance(event, ModelToken):
        return chunk_event(event.content) if event.content else None
    if isinstance(event, ModelTurnEnd):
        return tool_calls_event(list(event.tool_calls)) if event.tool_calls else None
    if isinstance(event, ToolResult):
        return tool_result_event(
            event.name, {"input": event.input, "output": event.output},
            event.call_id,
        )
    if isinstance(event, ToolFailure):
        return tool_error_event(
            event.name, {"error": {"message": event.error}}, event.call_id,
        )
    logger.warning("Unknown engine event %r dropped", type(event).__name__)
    return None


class StreamEncoder:
    """Drives an AgentEngine for one turn and yields protocol events."""

    def __init__(self, engine: AgentEngine):
        self.engine = engine

    async def encode(
        self,
        thread_id: str,
        inbound: InboundMessage,
        new_session: bool = False,
        tools: list[str] | None = None,
        model: str | None = None,
    ) -> AsyncIterator[dict]:
        if new_session:
            yield session_event(thread_id)

        last_turn: ModelTurnEnd | None = None
        try:
            async for event in self.engine.stream_events(
                thread_id, inbound.message, tools=tools, model=model,
            ):
                if isinstance(event, TurnComplete):
                    history = await self.engine.get_history(thread_id)
                    yield end_event(
                        thread_id, history,
                        _turn_to_dict(last_turn) if last_turn else None,
                    )
                    return
                if isinstance(event, ModelTurnEnd):
                    last_turn = event
                mapped = map_engine_event(event)
                if mapped is not None:
                    yield mapped
        except asyncio.CancelledError:
            logger.info("Client disconnected from chat stream",
                extra={"thread_id": thread_id})
            raise
        except Exception as e:
            logger.error("Chat stream failed: %s", e,
                extra={"thread_id": thread_id,
                       "error_code": getattr(e, "code", "INTERNAL_ERROR")},
                exc_info=True)
            yield error_event()
            return

        # Engine ended without TurnComplete: still owe exactly one terminal line
        logger.error("Engine finished without completion event",
            extra={"thread_id": thread_id})
        yield error_event()
