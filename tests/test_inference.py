"""Tests for the pooled OpenAI inference provider using a fake client."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from agent_router.services.inference import OpenAIInferenceProvider
from agent_router.services.llm_pool import LLMPool


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _delta(content=None, tool_calls=None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))])


def _tool_delta(index: int, id=None, name=None, arguments=None) -> SimpleNamespace:
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class FakeStream:
    def __init__(self, chunks: List[Any]) -> None:
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


class FakeCompletions:
    def __init__(self, chunks: List[Any], response: Any = None) -> None:
        self.chunks = chunks
        self.response = response
        self.requests: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        if kwargs.get("stream"):
            return FakeStream(self.chunks)
        return self.response


def _provider(completions: FakeCompletions) -> OpenAIInferenceProvider:
    pool = LLMPool()
    pool.register_client("fake-model", SimpleNamespace(chat=SimpleNamespace(completions=completions)), max_concurrent=1)
    return OpenAIInferenceProvider(pool, "fake-model", temperature=0.1)


@pytest.mark.anyio
async def test_stream_yields_content_then_stitched_tool_calls() -> None:
    completions = FakeCompletions(
        [
            SimpleNamespace(choices=[]),
            _delta(content="Checking"),
            _delta(tool_calls=[_tool_delta(0, id="call-1", name="price_", arguments='{"sku"')]),
            _delta(tool_calls=[_tool_delta(0, name="lookup", arguments=': "A1"}')]),
            _delta(tool_calls=[_tool_delta(1, id="call-2", name="listing_analyzer", arguments="not json")]),
        ]
    )
    provider = _provider(completions)
    tools = [{"type": "function", "function": {"name": "price_lookup"}}]

    chunks = [chunk async for chunk in provider.stream([{"role": "user", "content": "hi"}], tools)]

    assert [chunk.content for chunk in chunks] == ["Checking", ""]
    calls = chunks[-1].tool_calls
    assert [(call.id, call.name) for call in calls] == [("call-1", "price_lookup"), ("call-2", "listing_analyzer")]
    assert calls[0].arguments == {"sku": "A1"}
    assert calls[1].arguments == {"_raw": "not json"}
    assert completions.requests[0]["tools"] == tools
    assert completions.requests[0]["temperature"] == 0.1


@pytest.mark.anyio
async def test_invoke_returns_message_and_tool_calls() -> None:
    message = SimpleNamespace(
        content=None,
        tool_calls=[SimpleNamespace(id="call-1", function=SimpleNamespace(name="lookup", arguments='{"q": 1}'))],
    )
    completions = FakeCompletions([], SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="tool_calls")]))

    result = await _provider(completions).invoke([{"role": "user", "content": "hi"}])

    assert result.content == ""
    assert result.finish_reason == "tool_calls"
    assert result.tool_calls[0].arguments == {"q": 1}
    assert "tools" not in completions.requests[0]


@pytest.mark.anyio
async def test_unregistered_model_is_rejected() -> None:
    provider = OpenAIInferenceProvider(LLMPool(), "missing")

    with pytest.raises(KeyError):
        await provider.invoke([])
