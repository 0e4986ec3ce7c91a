"""Tests for the event wire format and SSE framing."""
from __future__ import annotations

import pytest

from agent_router.core.events import (
    AgentComplete,
    AgentSwitch,
    ContentChunk,
    ConversationEnd,
    ErrorEvent,
    ToolExecution,
    event_from_dict,
    is_terminal,
)
from agent_router.core.streaming import encode_sse, parse_sse, sse_stream


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def test_encode_sse_names_frame_after_event_type() -> None:
    frame = encode_sse(AgentSwitch(from_agent="none", to_agent="product_agent", reason="intent_change"))

    assert frame == (
        "event: agent_switch\n"
        'data: {"type": "agent_switch", "fromAgent": "none", "toAgent": "product_agent", '
        '"reason": "intent_change"}\n\n'
    )


def test_tool_execution_includes_message_only_when_set() -> None:
    assert "message" not in ToolExecution(tool_name="t", agent_id="a").to_dict()
    assert ToolExecution(tool_name="t", agent_id="a", message="Working...").to_dict()["message"] == "Working..."


def test_terminal_events() -> None:
    assert is_terminal(AgentComplete(agent_id="a"))
    assert is_terminal(ErrorEvent(error="x", agent_id="a"))
    assert is_terminal(ConversationEnd())
    assert not is_terminal(ContentChunk(content="hi", agent_id="a"))


def test_event_from_dict_rejects_bad_payloads() -> None:
    with pytest.raises(ValueError):
        event_from_dict({"type": "mystery"})
    with pytest.raises(ValueError):
        event_from_dict({"type": "content_chunk", "content": "hi"})


@pytest.mark.anyio
async def test_sse_stream_preserves_order() -> None:
    async def events():
        yield ContentChunk(content="Hello", agent_id="a")
        yield ContentChunk(content="multi\nline", agent_id="a")
        yield AgentComplete(agent_id="a", final_state={"done": True})

    body = "".join([frame async for frame in sse_stream(events())])
    decoded = [event_from_dict(payload) for payload in parse_sse(body)]

    assert decoded == [
        ContentChunk(content="Hello", agent_id="a"),
        ContentChunk(content="multi\nline", agent_id="a"),
        AgentComplete(agent_id="a", final_state={"done": True}),
    ]


def test_parse_sse_skips_comment_frames() -> None:
    assert parse_sse(": keep-alive\n\nevent: conversation_end\ndata: {\"type\": \"conversation_end\"}\n\n") == [
        {"type": "conversation_end"}
    ]
