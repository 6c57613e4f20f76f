"""Mock Anthropic Client — simulates the streaming API for agent engine tests.

Invariants:
    - MockAnthropicClient sequences responses (one per stream_message call)
    - Builder helpers produce realistic Anthropic response structures
    - _Stream supports both `async for event` and `await get_final_message()`

Design Decisions:
    - Flat mock classes (no inheritance): simple, explicit, easy to debug
    - Builders return _Stream objects: events for streaming, message for post-processing
    - Text deltas can be split into several tokens to exercise chunk ordering
"""

from contextlib import asynccontextmanager


# -- Mock Anthropic SDK objects ------------------------------------------------


class _Block:
    """Mock content block (text, tool_use)."""

    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)


class _Usage:
    def __init__(self, input_tokens=100, output_tokens=50):
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens


class _Message:
    """Mock Message returned by stream.get_final_message()."""

    def __init__(self, content, stop_reason="end_turn", input_tokens=100, output_tokens=50):
        self.content = content
        self.stop_reason = stop_reason
        self.usage = _Usage(input_tokens, output_tokens)


class _StreamEvent:
    """Mock stream event (content_block_start, content_block_delta)."""

    def __init__(self, type, content_block=None, delta=None):
        self.type = type
        self.content_block = content_block
        self.delta = delta


class _Delta:
    def __init__(self, type, text=None):
        self.type = type
        self.text = text


class _Stream:
    """Mock async iterable stream with get_final_message()."""

    def __init__(self, events, message):
        self._events = events
        self._message = message
        self._idx = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._idx >= len(self._events):
            raise StopAsyncIteration
        ev = self._events[self._idx]
        self._idx += 1
        return ev

    async def get_final_message(self):
        return self._message


class MockAnthropicClient:
    """Replaces ResilientAnthropicClient. Sequences pre-configured responses."""

    def __init__(self, responses):
        self._responses = responses
        self._idx = 0
        self.calls = []

    @asynccontextmanager
    async def stream_message(self, **kwargs):
        self.calls.append(kwargs)
        if self._idx >= len(self._responses):
            raise RuntimeError(
                f"MockAnthropicClient: no response at index {self._idx} "
                f"(configured {len(self._responses)})",
            )
        response = self._responses[self._idx]
        self._idx += 1
        if isinstance(response, Exception):
            raise response
        yield response


# -- Builder helpers -----------------------------------------------------------


def _text_events(tokens):
    events = [
        _StreamEvent("content_block_start", content_block=_Block(type="text", text="")),
    ]
    events += [
        _StreamEvent("content_block_delta", delta=_Delta("text_delta", text=t))
        for t in tokens
    ]
    return events


def text_response(text, tokens=None, stop_reason="end_turn"):
    """Text-only response; `tokens` splits the streamed deltas (default: one delta)."""
    tokens = tokens if tokens is not None else [text]
    message = _Message([_Block(type="text", text=text)], stop_reason)
    return _Stream(_text_events(tokens), message)


def tool_response(name, tool_input, stop_reason="tool_use"):
    """Single tool_use response stream."""
    tool_id = f"toolu_{name}_test"
    tool_block = _Block(type="tool_use", id=tool_id, name=name, input=tool_input)
    events = [
        _StreamEvent(
            "content_block_start",
            content_block=_Block(type="tool_use", id=tool_id, name=name, input={}),
        ),
    ]
    return _Stream(events, _Message([tool_block], stop_reason, 150, 80))


def mixed_response(text, tools, stop_reason="tool_use"):
    """Text + several tool_use blocks."""
    content = [_Block(type="text", text=text)]
    events = _text_events([text])
    for t in tools:
        tid = f"toolu_{t['name']}_test"
        content.append(_Block(type="tool_use", id=tid, name=t["name"], input=t["input"]))
        events.append(
            _StreamEvent(
                "content_block_start",
                content_block=_Block(type="tool_use", id=tid, name=t["name"], input={}),
            ),
        )
    return _Stream(events, _Message(content, stop_reason, 200, 120))
