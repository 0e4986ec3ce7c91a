"""Tool registry and execution used by agents that call tools."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from agent_router.core.models import PendingNotice, ToolCall, ToolResult, ToolStatus

logger = logging.getLogger(__name__)

DEFAULT_PENDING_MESSAGE = "Executing tool..."

_ERROR_KEYWORDS = re.compile(r"\b(error|errors|failed|failure|invalid|validation)\b", re.IGNORECASE)


class Tool:
    """A callable capability exposed to agents."""

    name: str = ""
    description: str = ""
    parameters: Dict[str, Any] = {"type": "object", "properties": {}}
    pending_message: Optional[str] = None

    async def prepare(self, user_id: str) -> None:
        """Check the tool is usable for ``user_id``; raise to withhold it."""
        return None

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        raise NotImplementedError

    def definition(self) -> Dict[str, Any]:
        """Describe the tool in the function-calling schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class FunctionTool(Tool):
    """Tool backed by an async callable returning a string or JSON-serialisable data."""

    def __init__(
        self,
        name: str,
        func: Callable[[Dict[str, Any]], Awaitable[Any]],
        *,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None,
        pending_message: Optional[str] = None,
    ) -> None:
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}
        self.pending_message = pending_message
        self._func = func

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        result = await self._func(arguments)
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)


class ToolCapabilityResolver(Protocol):
    async def resolve_tools(self, user_id: str) -> Sequence[Tool]:
        """Return the tools callable on behalf of ``user_id``."""


class StaticToolResolver:
    """Resolver offering the same tool set to every user."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    async def resolve_tools(self, user_id: str) -> Sequence[Tool]:
        return list(self._tools.values())


def classify_result(content: str) -> ToolStatus:
    """Derive success or error from raw tool output.

    JSON output carrying a boolean ``success`` flag is trusted. A JSON object
    with a truthy ``error`` and no flag is an error. Anything that is not JSON
    falls back to scanning for error keywords.
    """
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        if _ERROR_KEYWORDS.search(content or ""):
            return ToolStatus.ERROR
        return ToolStatus.SUCCESS

    if isinstance(parsed, dict):
        flag = parsed.get("success")
        if isinstance(flag, bool):
            return ToolStatus.SUCCESS if flag else ToolStatus.ERROR
        if parsed.get("error"):
            return ToolStatus.ERROR
    return ToolStatus.SUCCESS


class ToolExecutor:
    """Resolve a user's tools and run tool calls without ever raising."""

    def __init__(self, resolver: ToolCapabilityResolver) -> None:
        self._resolver = resolver

    async def build_tool_index(self, user_id: str) -> Dict[str, Tool]:
        try:
            candidates = await self._resolver.resolve_tools(user_id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to resolve tools for user %s", user_id)
            return {}

        index: Dict[str, Tool] = {}
        for tool in candidates:
            try:
                await tool.prepare(user_id)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Tool %s unavailable for user %s: %s", tool.name, user_id, exc)
                continue
            index[tool.name] = tool
        return index

    async def execute(
        self,
        tool_calls: Sequence[ToolCall],
        user_id: str,
        *,
        tools: Optional[Dict[str, Tool]] = None,
    ) -> List[ToolResult]:
        """Run each call in order and return one result per call."""
        index = tools if tools is not None else await self.build_tool_index(user_id)
        results: List[ToolResult] = []
        for call in tool_calls:
            results.append(await self._execute_one(call, index))
        return results

    async def _execute_one(self, call: ToolCall, index: Dict[str, Tool]) -> ToolResult:
        tool = index.get(call.name)
        if tool is None:
            logger.error("Tool not found: %s", call.name)
            return ToolResult(
                tool_call_id=call.id or "unknown",
                tool_name=call.name,
                content=f"Tool '{call.name}' not found",
                status=ToolStatus.ERROR,
            )
        try:
            logger.info("Executing tool %s", call.name)
            content = await tool.invoke(call.arguments)
        except Exception:  # noqa: BLE001
            logger.exception("Tool execution failed for %s", call.name)
            return ToolResult(
                tool_call_id=call.id or "unknown",
                tool_name=call.name,
                content="Tool execution failed",
                status=ToolStatus.ERROR,
            )
        return ToolResult(
            tool_call_id=call.id or "unknown",
            tool_name=call.name,
            content=content,
            status=classify_result(content),
        )

    def describe_pending_execution(
        self,
        tool_calls: Sequence[ToolCall],
        tools: Optional[Dict[str, Tool]] = None,
    ) -> List[PendingNotice]:
        notices = []
        for call in tool_calls:
            tool = (tools or {}).get(call.name)
            message = tool.pending_message if tool and tool.pending_message else DEFAULT_PENDING_MESSAGE
            notices.append(PendingNotice(tool_name=call.name, message=message))
        return notices
