"""Agent Engine — Anthropic-backed tool-using agent loop emitting generic engine events.

Invariants:
    - One turn = ordered ModelToken* / ModelTurnEnd / (ToolResult|ToolFailure)* ... TurnComplete
    - Max agent_max_iterations model calls per turn, then AgentLoopExceededError
    - Tool errors never crash the loop: they become ToolFailure + an error tool message
    - Thread history persisted once per turn, before TurnComplete is yielded
    - Model/API failures propagate to the caller (the stream encoder maps them)

Design Decisions:
    - Anthropic streaming API for real-time token delivery; get_final_message()
      for post-processing (avoids manual block reconstruction)
    - Engine speaks core/engine_events only — the encoder never sees SDK objects
    - History stored provider-neutral; converted per call in agent_engine_helpers
"""

import json
import logging
from typing import AsyncIterator

from chatstream.core.engine_events import (
    EngineEvent, ModelToken, ModelTurnEnd, ToolFailure, ToolResult, TurnComplete,
)
from chatstream.core.errors import (
    AgentLoopExceededError, ErrorContext, ToolExecutionError,
)
from chatstream.core.stored_messages import (
    StoredMessage, StoredToolCall, tool_message,
)
from chatstream.infrastructure.anthropic_client import ResilientAnthropicClient
from chatstream.services.agent_engine_helpers import (
    ai_message_from_response, to_anthropic_messages, token_from_stream_event,
)
from chatstream.services.agent_tools import ToolRegistry
from chatstream.services.thread_repository import ThreadRepository

logger = logging.getLogger(__name__)


class AnthropicAgentEngine:
    """Async agentic loop — yields engine events for one thread turn."""

    def __init__(
        self,
        client: ResilientAnthropicClient,
        threads: ThreadRepository,
        tools: ToolRegistry,
        model: str,
        system_prompt: str = "",
        max_tokens: int = 4096,
        max_iterations: int = 10,
    ):
        self.client = client
        self.threads = threads
        self.tools = tools
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.max_iterations = max_iterations

    async def get_history(self, thread_id: str) -> list[dict]:
        """Stored messages of the thread (empty for unknown threads)."""
        return await self.threads.load_raw(thread_id)

    async def stream_events(
        self,
        thread_id: str,
        message: StoredMessage,
        tools: list[str] | None = None,
        model: str | None = None,
    ) -> AsyncIterator[EngineEvent]:
        """Async generator driving the model/tool loop for one turn."""
        ctx = ErrorContext(thread_id=thread_id)
        history = await self.threads.load(thread_id)
        history.append(message)
        tool_defs = self.tools.definitions(self.tools.select(tools))

        for _ in range(self.max_iterations):
            response = None
            async with self.client.stream_message(
                model=model or self.model,
                max_tokens=self.max_tokens,
                system=self.system_prompt,
                tools=tool_defs,
                messages=to_anthropic_messages(history),
                context=ctx,
            ) as stream:
                async for event in stream:
                    token = token_from_stream_event(event)
                    if token is not None:
                        yield ModelToken(token)
                response = await stream.get_final_message()

            usage = getattr(response, "usage", None)
            logger.info("Model turn finished (stop=%s)",
                getattr(response, "stop_reason", None),
                extra={"thread_id": thread_id,
                       "input_tokens": getattr(usage, "input_tokens", None),
                       "output_tokens": getattr(usage, "output_tokens", None)})
            ai = ai_message_from_response(response)
            history.append(ai)
            yield ModelTurnEnd(
                message_id=ai.data.id or "",
                content=ai.data.content,
                tool_calls=[c.model_dump() for c in ai.data.tool_calls],
            )
            if not ai.data.tool_calls:
                await self.threads.save(thread_id, history)
                yield TurnComplete(thread_id)
                return

            for call in ai.data.tool_calls:
                event, result_msg = await self._execute_tool_safe(call, thread_id)
                history.append(result_msg)
                yield event

        await self.threads.save(thread_id, history)
        raise AgentLoopExceededError(self.max_iterations, ctx)

    async def _execute_tool_safe(
        self, call: StoredToolCall, thread_id: str,
    ) -> tuple[ToolResult | ToolFailure, StoredMessage]:
        """Execute tool with error boundary — never raises."""
        try:
            output = await self.tools.execute(call.name, call.args)
        except ToolExecutionError as e:
            logger.warning("Tool error: %s", e.message,
                extra={"thread_id": thread_id, "tool_name": call.name,
                       "error_code": e.code})
            return (
                ToolFailure(call.name, e.message, call.args, call.id),
                tool_message(e.message, call.id, call.name, is_error=True),
            )
        except Exception as e:
            logger.error("Unexpected error in tool '%s': %s", call.name, e,
                extra={"thread_id": thread_id}, exc_info=True)
            message = f"Internal error executing {call.name}"
            return (
                ToolFailure(call.name, message, call.args, call.id),
                tool_message(message, call.id, call.name, is_error=True),
            )
        return (
            ToolResult(call.name, output, call.args, call.id),
            tool_message(
                json.dumps(output, ensure_ascii=False, default=str),
                call.id, call.name,
            ),
        )
