"""Tests for tool resolution, execution and result classification."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from agent_router.core.models import ToolCall, ToolStatus
from agent_router.services.listing_tools import listing_tools
from agent_router.services.tools import (
    DEFAULT_PENDING_MESSAGE,
    FunctionTool,
    StaticToolResolver,
    Tool,
    ToolExecutor,
    classify_result,
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


async def _echo(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "data": arguments}


async def _explode(arguments: Dict[str, Any]) -> str:
    raise RuntimeError("database unavailable")


class UnavailableTool(Tool):
    name = "unavailable"

    async def prepare(self, user_id: str) -> None:
        raise PermissionError(f"{user_id} lacks access")


class BrokenResolver:
    async def resolve_tools(self, user_id: str):
        raise ConnectionError("resolver down")


def test_classify_result() -> None:
    assert classify_result('{"success": true, "data": {"id": 1}}') is ToolStatus.SUCCESS
    assert classify_result('{"success": false, "error": "bad input"}') is ToolStatus.ERROR
    assert classify_result('{"error": "quota exceeded"}') is ToolStatus.ERROR
    assert classify_result("Upload failed after 3 attempts") is ToolStatus.ERROR
    assert classify_result("Listing published") is ToolStatus.SUCCESS
    # whole words only
    assert classify_result("terror movie listings") is ToolStatus.SUCCESS


@pytest.mark.anyio
async def test_execute_runs_known_tools_and_serialises_results() -> None:
    executor = ToolExecutor(StaticToolResolver([FunctionTool("echo", _echo)]))

    [result] = await executor.execute([ToolCall(id="c1", name="echo", arguments={"x": 1})], "user-1")

    assert result.tool_call_id == "c1"
    assert result.status is ToolStatus.SUCCESS
    assert result.content == '{"success": true, "data": {"x": 1}}'


@pytest.mark.anyio
async def test_unknown_and_failing_tools_become_error_results() -> None:
    executor = ToolExecutor(StaticToolResolver([FunctionTool("explode", _explode)]))
    calls = [
        ToolCall(id="c1", name="missing", arguments={}),
        ToolCall(id="c2", name="explode", arguments={}),
    ]

    missing, exploded = await executor.execute(calls, "user-1")

    assert missing.status is ToolStatus.ERROR
    assert missing.content == "Tool 'missing' not found"
    assert exploded.status is ToolStatus.ERROR
    assert exploded.content == "Tool execution failed"
    assert exploded.tool_call_id == "c2"


@pytest.mark.anyio
async def test_tool_index_omits_tools_that_fail_to_prepare() -> None:
    executor = ToolExecutor(StaticToolResolver([FunctionTool("echo", _echo), UnavailableTool()]))

    index = await executor.build_tool_index("user-1")

    assert list(index) == ["echo"]


@pytest.mark.anyio
async def test_resolver_failure_yields_empty_index() -> None:
    executor = ToolExecutor(BrokenResolver())

    assert await executor.build_tool_index("user-1") == {}
    [result] = await executor.execute([ToolCall(id="c1", name="echo", arguments={})], "user-1")
    assert result.status is ToolStatus.ERROR


@pytest.mark.anyio
async def test_pending_notices_fall_back_to_generic_message() -> None:
    executor = ToolExecutor(StaticToolResolver(listing_tools()))
    index = await executor.build_tool_index("user-1")

    notices = executor.describe_pending_execution(
        [
            ToolCall(id="c1", name="listing_validator", arguments={}),
            ToolCall(id="c2", name="unknown", arguments={}),
        ],
        index,
    )

    assert [notice.message for notice in notices] == ["Validating listing data...", DEFAULT_PENDING_MESSAGE]


@pytest.mark.anyio
async def test_listing_validator_reports_missing_fields() -> None:
    executor = ToolExecutor(StaticToolResolver(listing_tools()))

    [result] = await executor.execute(
        [ToolCall(id="c1", name="listing_validator", arguments={"title": "Desk lamp"})], "user-1"
    )

    assert result.status is ToolStatus.ERROR
    assert "description is required" in result.content
