"""LLM-powered agent that answers through an inference provider and calls tools."""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional, Sequence

from agent_router.agents.base import Agent
from agent_router.core.events import AgentEvent
from agent_router.core.models import ChatMessage, ExecutionConfig, ExecutionState, ToolCall
from agent_router.services.tools import StaticToolResolver, Tool, ToolExecutor

if TYPE_CHECKING:
    from agent_router.services.inference import InferenceProvider

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant agent in a multi-agent system."


class LLMAgent(Agent):
    """Agent that streams model output and runs the tool calls the model requests."""

    def __init__(
        self,
        *,
        agent_id: str,
        name: str,
        intents: Sequence[str],
        provider: InferenceProvider,
        tool_executor: Optional[ToolExecutor] = None,
        description: str = "",
        tools: Sequence[str] = (),
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tool_rounds: int = 5,
        priority: int = 0,
    ) -> None:
        super().__init__()
        self.id = agent_id
        self.name = name
        self.description = description
        self.intents = tuple(intents)
        self.tools = tuple(tools)
        self.priority = priority
        self.system_prompt = system_prompt
        self.max_tool_rounds = max_tool_rounds
        self._provider = provider
        self._tool_executor = tool_executor or ToolExecutor(StaticToolResolver())

    def _build_messages(self, state: ExecutionState) -> List[Dict[str, Any]]:
        system = self.system_prompt
        session_data = state.shared_context.session_data
        if session_data:
            system += "\n\nShared conversation data:\n" + json.dumps(session_data, default=str)
        if state.shared_data:
            system += "\n\nNotes from other agents:\n" + json.dumps(state.shared_data, default=str)
        messages = [{"role": "system", "content": system}]
        messages.extend(message.to_llm() for message in state.messages if message.role != "system")
        return messages

    async def _tool_index(self, user_id: str) -> Dict[str, Tool]:
        index = await self._tool_executor.build_tool_index(user_id)
        if self.tools:
            index = {name: tool for name, tool in index.items() if name in self.tools}
        return index

    async def execute(self, state: ExecutionState, config: ExecutionConfig) -> AsyncIterator[AgentEvent]:
        messages = self._build_messages(state)
        index = await self._tool_index(state.user_id)
        definitions = [tool.definition() for tool in index.values()] or None
        tool_rounds = 0

        while True:
            parts: List[str] = []
            tool_calls: List[ToolCall] = []
            async for chunk in self._provider.stream(messages, definitions):
                if chunk.content:
                    parts.append(chunk.content)
                    yield self.content(chunk.content)
                tool_calls.extend(chunk.tool_calls)

            reply = "".join(parts)
            if not tool_calls:
                yield self.complete({"lastResponse": reply, "toolRounds": tool_rounds})
                return

            if tool_rounds >= self.max_tool_rounds:
                yield self.error(f"Stopped after {self.max_tool_rounds} tool rounds without a final answer")
                return
            tool_rounds += 1

            messages.append(ChatMessage(role="assistant", content=reply, tool_calls=tool_calls).to_llm())
            for notice in self._tool_executor.describe_pending_execution(tool_calls, index):
                yield self.tool_execution(notice.tool_name, notice.message)

            results = await self._tool_executor.execute(tool_calls, state.user_id, tools=index)
            for result in results:
                yield self.tool_result(result.to_dict(), result.tool_name)
                messages.append(
                    ChatMessage(role="tool", content=result.content, tool_call_id=result.tool_call_id).to_llm()
                )
