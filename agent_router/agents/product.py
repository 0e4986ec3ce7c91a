"""Product management agent handling listing creation, optimisation and publishing."""
from __future__ import annotations

import logging
import re
import uuid
from typing import Any, AsyncIterator, Dict, List, Tuple

from agent_router.agents.base import Agent
from agent_router.core.events import AgentEvent
from agent_router.core.models import (
    AgentConfig,
    ExecutionConfig,
    ExecutionState,
    ToolCall,
    ToolResult,
    utc_timestamp,
)
from agent_router.services.tools import Tool, ToolExecutor

logger = logging.getLogger(__name__)

_TITLE_PATTERN = re.compile(r"[\"“](.+?)[\"”]")


class ProductAgent(Agent):
    """Scripted listing workflow that runs listing tools through the tool executor."""

    id = "product_agent"
    name = "Product Management"
    description = "Handles product listing creation and optimization for e-commerce platforms"
    intents = ("product", "listing", "create", "optimize", "publish", "marketplace")
    tools = ("listing_analyzer", "listing_validator", "marketplace_uploader")

    def __init__(self, tool_executor: ToolExecutor) -> None:
        super().__init__()
        self._tool_executor = tool_executor

    async def on_initialize(self, user_id: str, config: AgentConfig) -> None:
        logger.info("Product agent ready for user %s with %d tools", user_id, len(self.tools))

    async def execute(self, state: ExecutionState, config: ExecutionConfig) -> AsyncIterator[AgentEvent]:
        latest = state.latest_user_message()
        if latest is None:
            yield self.error("No user message found")
            return

        yield self.content("Starting product management workflow...\n\n")
        text = latest.content.lower()
        draft = dict(state.agent_state.get("draft") or {})

        if "optimize" in text or "improve" in text:
            async for event in self._optimize(draft, state):
                yield event
            action = "listing_optimized"
        elif "publish" in text or "upload" in text:
            async for event in self._publish(draft, state):
                yield event
            action = "listing_published"
        elif "create" in text or "new" in text:
            draft = self._new_draft(latest.content)
            for line in self._create_script():
                yield self.content(line)
            action = "draft_created"
        else:
            for line in self._inquiry_script():
                yield self.content(line)
            action = "inquiry_answered"

        final_state = {"draft": draft, "lastAction": action, "updatedAt": utc_timestamp()}
        if config.context_store is not None:
            await config.context_store.save_agent_state(self.id, state.conversation_id, final_state)
            if draft:
                await config.context_store.update_shared_context(
                    state.conversation_id, {"session_data": {"currentProducts": [draft]}}
                )
        yield self.complete(final_state)

    @staticmethod
    def _new_draft(message: str) -> Dict[str, Any]:
        match = _TITLE_PATTERN.search(message)
        return {
            "id": uuid.uuid4().hex,
            "status": "collecting_info",
            "title": match.group(1) if match else "",
            "description": "",
            "images": 0,
            "steps": ["product_info", "marketplace_details", "optimization"],
        }

    @staticmethod
    def _create_script() -> List[str]:
        return [
            "I'll help you create a new product listing!\n\n",
            "**Step 1: Product information**\n",
            "- What type of product are you selling?\n",
            "- What's the product name and description?\n",
            "- Do you have product images ready?\n\n",
            "**Step 2: Marketplace details**\n",
            "- Which marketplace and category?\n",
            "- Pricing strategy?\n\n",
            "Send me the details and I'll draft an optimized listing.",
        ]

    @staticmethod
    def _inquiry_script() -> List[str]:
        return [
            "I'm your Product Management assistant. I can help you:\n\n",
            "- **Create** new listings\n",
            "- **Optimize** existing listings\n",
            "- **Publish** listings to a marketplace\n\n",
            "What would you like to work on today?",
        ]

    async def _prepare_call(
        self, tool_name: str, draft: Dict[str, Any], user_id: str
    ) -> Tuple[ToolCall, Dict[str, Tool], str]:
        call = ToolCall(id=f"call_{uuid.uuid4().hex[:12]}", name=tool_name, arguments=dict(draft))
        index = await self._tool_executor.build_tool_index(user_id)
        notice = self._tool_executor.describe_pending_execution([call], index)[0]
        return call, index, notice.message

    async def _call_tool(self, call: ToolCall, index: Dict[str, Tool], user_id: str) -> ToolResult:
        return (await self._tool_executor.execute([call], user_id, tools=index))[0]

    async def _optimize(self, draft: Dict[str, Any], state: ExecutionState) -> AsyncIterator[AgentEvent]:
        yield self.content("Analyzing your listing for optimization opportunities...\n\n")
        call, index, notice = await self._prepare_call("listing_analyzer", draft, state.user_id)
        yield self.tool_execution(call.name, notice)
        result = await self._call_tool(call, index, state.user_id)
        yield self.tool_result(result.to_dict(), call.name)
        yield self.content(_summarize(result))

    async def _publish(self, draft: Dict[str, Any], state: ExecutionState) -> AsyncIterator[AgentEvent]:
        yield self.content("Preparing to publish your listing...\n\n")
        for tool_name in ("listing_validator", "marketplace_uploader"):
            call, index, notice = await self._prepare_call(tool_name, draft, state.user_id)
            yield self.tool_execution(call.name, notice)
            result = await self._call_tool(call, index, state.user_id)
            yield self.tool_result(result.to_dict(), call.name)
            if not result.ok:
                yield self.content(_summarize(result))
                return
        draft["status"] = "published"
        yield self.content("Your listing has been published!")


def _summarize(result: ToolResult) -> str:
    if result.ok:
        return f"Results: {result.content}\n"
    return f"I couldn't complete that step: {result.content}\n"
