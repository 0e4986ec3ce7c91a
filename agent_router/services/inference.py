"""Inference provider interface and its OpenAI-backed implementation."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence

from agent_router.core.models import ToolCall
from agent_router.services.llm_pool import LLMPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InferenceChunk:
    """Incremental piece of a streamed completion."""

    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass(slots=True)
class InferenceMessage:
    """Complete (non-streamed) model response."""

    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None


class InferenceProvider(Protocol):
    async def invoke(
        self,
        messages: Sequence[Dict[str, Any]],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> InferenceMessage:
        ...

    def stream(
        self,
        messages: Sequence[Dict[str, Any]],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AsyncIterator[InferenceChunk]:
        ...


def _parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Model returned non-JSON tool arguments: %.200s", raw)
        return {"_raw": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


class OpenAIInferenceProvider:
    """Chat-completions provider drawing clients from an ``LLMPool``."""

    def __init__(self, llm_pool: LLMPool, model_name: str, *, temperature: float = 0.7) -> None:
        self._llm_pool = llm_pool
        self.model_name = model_name
        self.temperature = temperature

    def _request(self, messages: Sequence[Dict[str, Any]], tools: Optional[Sequence[Dict[str, Any]]]) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": self.model_name,
            "messages": list(messages),
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = list(tools)
        return request

    async def invoke(
        self,
        messages: Sequence[Dict[str, Any]],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> InferenceMessage:
        async with self._llm_pool.acquire(self.model_name) as client:
            response = await client.chat.completions.create(**self._request(messages, tools))

        choice = response.choices[0]
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=_parse_arguments(tc.function.arguments))
            for tc in (choice.message.tool_calls or [])
        ]
        return InferenceMessage(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
        )

    async def stream(
        self,
        messages: Sequence[Dict[str, Any]],
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AsyncIterator[InferenceChunk]:
        """Yield content deltas as they arrive, then any tool calls once complete."""
        # Tool call fragments arrive keyed by index and are stitched together.
        pending: Dict[int, Dict[str, str]] = {}
        async with self._llm_pool.acquire(self.model_name) as client:
            response = await client.chat.completions.create(stream=True, **self._request(messages, tools))
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    yield InferenceChunk(content=delta.content)
                for tc in delta.tool_calls or []:
                    entry = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function is not None:
                        entry["name"] += tc.function.name or ""
                        entry["arguments"] += tc.function.arguments or ""

        if pending:
            calls = [
                ToolCall(id=entry["id"], name=entry["name"], arguments=_parse_arguments(entry["arguments"]))
                for _, entry in sorted(pending.items())
            ]
            logger.info("Model %s requested %d tool call(s)", self.model_name, len(calls))
            yield InferenceChunk(tool_calls=calls)
