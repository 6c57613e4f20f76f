"""Integration Tests: AnthropicAgentEngine — model/tool loop over a real thread repository.

Invariants:
    - Text-only turn → ModelToken* + ModelTurnEnd + TurnComplete, history saved
    - Tool use → ToolResult/ToolFailure, then the loop continues
    - Tool errors never crash the loop
    - Loop capped at max_iterations
    - Prior history is replayed to the model in Anthropic format

Design Decisions:
    - Mock at Anthropic boundary (MockAnthropicClient), real ToolRegistry, real DB
"""

import pytest

from chatstream.core.engine_events import (
    ModelToken, ModelTurnEnd, ToolFailure, ToolResult, TurnComplete,
)
from chatstream.core.errors import AgentLoopExceededError, AnthropicAPIError
from chatstream.core.stored_messages import human_message
from chatstream.services.agent_engine import AnthropicAgentEngine
from chatstream.services.agent_tools import ToolRegistry

from tests.services.mock_anthropic import (
    MockAnthropicClient, mixed_response, text_response, tool_response,
)


def _engine(client, thread_repository, max_iterations=10, tools=None):
    return AnthropicAgentEngine(
        client=client,
        threads=thread_repository,
        tools=ToolRegistry(tools),
        model="claude-test",
        system_prompt="system",
        max_iterations=max_iterations,
    )


async def _collect(engine, text="hello", thread_id="t-1", **kwargs):
    return [e async for e in engine.stream_events(thread_id, human_message(text), **kwargs)]


async def test_text_turn_streams_tokens_and_saves(thread_repository):
    client = MockAnthropicClient([text_response("你好", tokens=["你", "好"])])
    engine = _engine(client, thread_repository)

    events = await _collect(engine)

    assert [type(e) for e in events] == [ModelToken, ModelToken, ModelTurnEnd, TurnComplete]
    assert events[2].content == "你好"
    assert events[2].tool_calls == []
    history = await engine.get_history("t-1")
    assert [m["type"] for m in history] == ["human", "ai"]
    assert history[1]["data"]["content"] == "你好"


async def test_request_passes_model_system_and_tools(thread_repository):
    client = MockAnthropicClient([text_response("ok")])
    engine = _engine(client, thread_repository)

    await _collect(engine, tools=["word_count"], model="claude-override")

    call = client.calls[0]
    assert call["model"] == "claude-override"
    assert call["system"] == "system"
    assert [t["name"] for t in call["tools"]] == ["word_count"]
    assert call["messages"] == [{"role": "user", "content": "hello"}]


async def test_tool_call_executes_and_loops(thread_repository):
    client = MockAnthropicClient([
        tool_response("calculator", {"expression": "6*7"}),
        text_response("42"),
    ])
    engine = _engine(client, thread_repository)

    events = await _collect(engine)

    turn_ends = [e for e in events if isinstance(e, ModelTurnEnd)]
    assert turn_ends[0].tool_calls == [{
        "id": "toolu_calculator_test", "name": "calculator",
        "args": {"expression": "6*7"},
    }]
    result = next(e for e in events if isinstance(e, ToolResult))
    assert result.output == {"expression": "6*7", "result": 42}
    assert result.call_id == "toolu_calculator_test"
    assert isinstance(events[-1], TurnComplete)

    # Second model call sees the tool_use + tool_result pair
    second = client.calls[1]["messages"]
    assert second[1]["role"] == "assistant"
    assert second[1]["content"][0]["type"] == "tool_use"
    assert second[2]["content"][0]["type"] == "tool_result"
    assert second[2]["content"][0]["tool_use_id"] == "toolu_calculator_test"


async def test_tool_error_becomes_failure_and_loop_continues(thread_repository):
    client = MockAnthropicClient([
        tool_response("calculator", {"expression": "1/0"}),
        text_response("cannot divide by zero"),
    ])
    engine = _engine(client, thread_repository)

    events = await _collect(engine)

    failure = next(e for e in events if isinstance(e, ToolFailure))
    assert failure.error == "division by zero"
    assert isinstance(events[-1], TurnComplete)
    tool_result = client.calls[1]["messages"][2]["content"][0]
    assert tool_result["is_error"] is True


async def test_multiple_tools_in_one_response(thread_repository):
    client = MockAnthropicClient([
        mixed_response("checking", [
            {"name": "word_count", "input": {"text": "a b c"}},
            {"name": "calculator", "input": {"expression": "2**3"}},
        ]),
        text_response("done"),
    ])
    engine = _engine(client, thread_repository)

    events = await _collect(engine)

    results = [e for e in events if isinstance(e, ToolResult)]
    assert [r.name for r in results] == ["word_count", "calculator"]
    # Both tool results travel back in ONE user message
    messages = client.calls[1]["messages"]
    assert len(messages[2]["content"]) == 2


async def test_disabled_tool_fails_without_crashing(thread_repository):
    client = MockAnthropicClient([
        tool_response("current_time", {}),
        text_response("sorry"),
    ])
    engine = _engine(client, thread_repository, tools=["calculator"])

    events = await _collect(engine)

    failure = next(e for e in events if isinstance(e, ToolFailure))
    assert "does not exist" in failure.error


async def test_history_replayed_on_next_turn(thread_repository):
    client = MockAnthropicClient([text_response("first"), text_response("second")])
    engine = _engine(client, thread_repository)

    await _collect(engine, text="one")
    await _collect(engine, text="two")

    messages = client.calls[1]["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert len(await engine.get_history("t-1")) == 4


async def test_max_iterations_raises(thread_repository):
    client = MockAnthropicClient([
        tool_response("word_count", {"text": "x"}) for _ in range(3)
    ])
    engine = _engine(client, thread_repository, max_iterations=3)

    with pytest.raises(AgentLoopExceededError):
        await _collect(engine)
    assert len(client.calls) == 3


async def test_api_error_propagates(thread_repository):
    client = MockAnthropicClient([AnthropicAPIError("overloaded", "overloaded")])
    engine = _engine(client, thread_repository)

    with pytest.raises(AnthropicAPIError):
        await _collect(engine)


async def test_unknown_thread_has_empty_history(thread_repository):
    engine = _engine(MockAnthropicClient([]), thread_repository)
    assert await engine.get_history("missing") == []
