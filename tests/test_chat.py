"""HTTP tests for the agent directory, conversation lifecycle and SSE chat routes."""
from __future__ import annotations

from typing import AsyncIterator

import httpx
import pytest

from agent_router.agents.product import ProductAgent
from agent_router.core.context_store import InMemoryContextStore
from agent_router.core.streaming import parse_sse
from agent_router.main import app
from agent_router.orchestration.orchestrator import Orchestrator
from agent_router.orchestration.registry import AgentRegistry
from agent_router.runtime import get_orchestrator
from agent_router.services.event_store import InMemoryEventStore
from agent_router.services.listing_tools import listing_tools
from agent_router.services.tools import StaticToolResolver, ToolExecutor


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def orchestrator() -> Orchestrator:
    registry = AgentRegistry()
    registry.register(ProductAgent(ToolExecutor(StaticToolResolver(listing_tools()))))
    return Orchestrator(
        registry=registry,
        context_store=InMemoryContextStore(),
        event_store=InMemoryEventStore(),
    )


@pytest.fixture
async def client(orchestrator: Orchestrator, anyio_backend: str) -> AsyncIterator[httpx.AsyncClient]:
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_list_and_get_agents(client: httpx.AsyncClient) -> None:
    response = await client.get("/agents")
    assert response.status_code == 200
    assert [agent["id"] for agent in response.json()] == ["product_agent"]

    detail = await client.get("/agents/product_agent")
    assert detail.json()["tools"] == ["listing_analyzer", "listing_validator", "marketplace_uploader"]

    missing = await client.get("/agents/nobody")
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_chat_streams_sse_events(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/conversations/conv-1/messages",
        json={"message": "create a new product listing", "user_id": "user-1"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert "event: agent_switch\n" in response.text

    payloads = parse_sse(response.text)
    assert payloads[0] == {
        "type": "agent_switch",
        "fromAgent": "none",
        "toAgent": "product_agent",
        "reason": "intent_change",
    }
    assert payloads[1]["type"] == "agent_start"
    assert payloads[-1]["type"] == "agent_complete"
    assert payloads[-1]["finalState"]["lastAction"] == "draft_created"


@pytest.mark.anyio
async def test_chat_without_matching_agent_reports_router_error(client: httpx.AsyncClient) -> None:
    response = await client.post("/conversations/conv-1/messages", json={"message": "what is the weather"})

    assert parse_sse(response.text) == [
        {
            "type": "error",
            "error": "No suitable agent found for this request. Please try rephrasing your message.",
            "agentId": "router",
        }
    ]


@pytest.mark.anyio
async def test_conversation_lifecycle(client: httpx.AsyncClient) -> None:
    started = await client.post("/conversations/conv-9/start", json={"user_id": "user-9"})
    assert started.status_code == 201
    assert started.json()["phase"] == "IDLE"

    switched = await client.post("/conversations/conv-9/switch", json={"agent_id": "product_agent"})
    assert switched.json()["pending_agent"] == "product_agent"

    unknown = await client.post("/conversations/conv-9/switch", json={"agent_id": "nobody"})
    assert unknown.status_code == 404

    turn = await client.post("/conversations/conv-9/messages", json={"message": "hello"})
    assert parse_sse(turn.text)[0]["reason"] == "manual_switch"

    stats = await client.get("/conversations/conv-9")
    assert stats.json()["currentAgent"] == "product_agent"

    ended = await client.post("/conversations/conv-9/end")
    assert ended.json() == {"type": "conversation_end"}
    assert (await client.get("/conversations/conv-9")).json()["phase"] == "ENDED"

    conflict = await client.post("/conversations/conv-9/switch", json={"agent_id": "product_agent"})
    assert conflict.status_code == 409

    assert (await client.get("/conversations/unknown")).status_code == 404


@pytest.mark.anyio
async def test_empty_message_is_rejected(client: httpx.AsyncClient) -> None:
    response = await client.post("/conversations/conv-1/messages", json={"message": ""})
    assert response.status_code == 422


@pytest.mark.anyio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
