"""Stored message format — strict parsing and rendering into chat messages.

Tests cover:
    - Strict deserialization rejects shapes without data.content
    - human → user, ai → assistant with tool calls, system skipped
    - Tool messages fold into the matching call (JSON output decoded, errors kept)
"""

import pytest
from pydantic import ValidationError

from chatstream.core.domain_types import MessageRole
from chatstream.core.messages import ToolCallState
from chatstream.core.stored_messages import (
    ai_message, first_text, human_message, stored_message_from_dict,
    to_chat_messages, tool_message,
)


def test_strict_parse_rejects_missing_content():
    with pytest.raises(ValidationError):
        stored_message_from_dict({"type": "human", "data": {"id": "x"}})


def test_strict_parse_rejects_unknown_type():
    with pytest.raises(ValidationError):
        stored_message_from_dict({"type": "constructor", "data": {"content": "x"}})


def test_extra_data_keys_survive_round_trip():
    msg = stored_message_from_dict(
        {"type": "ai", "data": {"content": "x", "id": "1", "response_metadata": {"a": 1}}},
    )
    assert msg.to_dict()["data"]["response_metadata"] == {"a": 1}


def test_first_text():
    assert first_text("plain") == "plain"
    assert first_text([{"type": "image_url"}, {"type": "text", "text": "t"}]) == "t"
    assert first_text([{"type": "image_url"}]) is None
    assert first_text(None) is None


def test_render_roles_and_skip_system():
    stored = [
        stored_message_from_dict({"type": "system", "data": {"content": "be nice"}}),
        human_message("hi", "u1"),
        ai_message("hello", message_id="a1"),
    ]
    rendered = to_chat_messages(stored)
    assert [(m.role, m.id) for m in rendered] == [
        (MessageRole.USER, "u1"), (MessageRole.ASSISTANT, "a1"),
    ]


def test_tool_output_folds_into_requesting_call():
    stored = [
        human_message("2+2?"),
        ai_message("", [{"id": "c1", "name": "calculator", "args": {"expression": "2+2"}}]),
        tool_message('{"result": 4}', "c1", "calculator"),
        ai_message("4"),
    ]
    rendered = to_chat_messages(stored)
    assert len(rendered) == 3
    call = rendered[1].tool_calls[0]
    assert call.state == ToolCallState.RESOLVED
    assert call.output == {"result": 4}
    assert call.args == {"expression": "2+2"}


def test_tool_error_folds_as_failure():
    stored = [
        ai_message("", [{"id": "c1", "name": "calculator", "args": {}}]),
        tool_message("division by zero", "c1", "calculator", is_error=True),
    ]
    call = to_chat_messages(stored)[0].tool_calls[0]
    assert call.state == ToolCallState.FAILED
    assert call.error == "division by zero"


def test_non_json_tool_output_kept_as_text():
    stored = [
        ai_message("", [{"id": "c1", "name": "echo", "args": {}}]),
        tool_message("plain text", "c1", "echo"),
    ]
    assert to_chat_messages(stored)[0].tool_calls[0].output == "plain text"
