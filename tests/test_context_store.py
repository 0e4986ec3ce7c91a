"""Tests for the in-memory shared context store."""
from __future__ import annotations

import asyncio

import pytest

from agent_router.core.context_store import InMemoryContextStore
from agent_router.core.models import AgentHistoryEntry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.mark.anyio
async def test_shared_context_created_lazily() -> None:
    store = InMemoryContextStore()
    context = await store.get_shared_context("conv-1")

    assert context.conversation_id == "conv-1"
    assert context.session_data == {}
    assert context.agent_history == []
    assert store.get_stats()["sharedContexts"] == 1


@pytest.mark.anyio
async def test_agent_history_appends_across_updates() -> None:
    store = InMemoryContextStore()
    x = AgentHistoryEntry(agent_id="x", context={"step": 1})
    y = AgentHistoryEntry(agent_id="y", context={"step": 2})

    await store.update_shared_context("conv-1", {"agent_history": [x]})
    await store.update_shared_context("conv-1", {"agent_history": [y]})

    context = await store.get_shared_context("conv-1")
    assert context.agent_history == [x, y]


@pytest.mark.anyio
async def test_session_data_merges_slots() -> None:
    store = InMemoryContextStore()
    await store.update_shared_context("conv-1", {"session_data": {"currentProducts": [1]}, "user_id": "u1"})
    await store.update_shared_context("conv-1", {"session_data": {"marketplace": "etsy"}})
    await store.update_shared_context("conv-1", {"session_data": {"currentProducts": [2]}})

    context = await store.get_shared_context("conv-1")
    assert context.user_id == "u1"
    assert context.session_data == {"currentProducts": [2], "marketplace": "etsy"}


@pytest.mark.anyio
async def test_unknown_shared_context_field_is_rejected() -> None:
    store = InMemoryContextStore()
    with pytest.raises(ValueError):
        await store.update_shared_context("conv-1", {"session_data": {"k": "v"}, "bogus": 1})

    assert (await store.get_shared_context("conv-1")).session_data == {}


@pytest.mark.anyio
async def test_history_entry_without_agent_id_writes_nothing() -> None:
    store = InMemoryContextStore()
    update = {
        "agent_history": [
            {"agent_id": "product_agent", "context": {"step": 1}},
            {"context": {"step": 2}},
        ]
    }

    with pytest.raises(ValueError):
        await store.update_shared_context("conv-1", update)

    assert (await store.get_shared_context("conv-1")).agent_history == []

    await store.update_shared_context("conv-1", {"agent_history": update["agent_history"][:1]})
    [entry] = (await store.get_shared_context("conv-1")).agent_history
    assert (entry.agent_id, entry.context) == ("product_agent", {"step": 1})


@pytest.mark.anyio
async def test_sweep_runs_registered_hooks() -> None:
    clock = FakeClock()
    store = InMemoryContextStore(default_expiration=10.0, clock=clock)
    seen = []

    async def hook() -> int:
        seen.append(store.now())
        return 0

    store.add_sweep_hook(hook)
    await store.save_agent_state("agent", "conv-1", {"a": 1})
    clock.advance(11.0)

    assert await store.sweep() == 1
    assert seen == [1011.0]


@pytest.mark.anyio
async def test_returned_context_is_a_copy() -> None:
    store = InMemoryContextStore()
    context = await store.get_shared_context("conv-1")
    context.session_data["leak"] = True

    assert (await store.get_shared_context("conv-1")).session_data == {}


@pytest.mark.anyio
async def test_agent_state_ttl_boundary() -> None:
    clock = FakeClock()
    store = InMemoryContextStore(default_expiration=60.0, clock=clock)
    await store.save_agent_state("agent", "conv-1", {"draft": "x"})

    clock.advance(60.0 - 0.001)
    assert await store.get_agent_state("agent", "conv-1") == {"draft": "x"}

    clock.advance(0.002)
    assert await store.get_agent_state("agent", "conv-1") == {}


@pytest.mark.anyio
async def test_agent_state_is_scoped_per_conversation() -> None:
    store = InMemoryContextStore()
    await store.save_agent_state("agent", "conv-1", {"value": 1})

    assert await store.get_agent_state("agent", "conv-2") == {}
    assert await store.get_agent_state("other", "conv-1") == {}


@pytest.mark.anyio
async def test_shared_data_uses_half_ttl_and_aggregates_senders() -> None:
    clock = FakeClock()
    store = InMemoryContextStore(default_expiration=60.0, clock=clock)
    await store.share_data("a", "target", {"from": "a"})
    await store.share_data("b", "target", {"from": "b"})
    await store.share_data("a", "target", {"from": "a", "v": 2})
    await store.share_data("a", "elsewhere", 1)

    assert await store.get_shared_data("target") == {"a": {"from": "a", "v": 2}, "b": {"from": "b"}}

    clock.advance(31.0)
    assert await store.get_shared_data("target") == {}


@pytest.mark.anyio
async def test_sweep_purges_only_expired_entries() -> None:
    clock = FakeClock()
    store = InMemoryContextStore(default_expiration=60.0, clock=clock)
    await store.get_shared_context("old")
    await store.save_agent_state("agent", "old", {"a": 1})
    await store.share_data("a", "b", 1)

    clock.advance(45.0)
    await store.get_shared_context("fresh")

    assert await store.sweep() == 1  # shared datum expired at +30s
    clock.advance(20.0)
    assert await store.sweep() == 2
    assert store.get_stats() == {
        "sharedContexts": 1,
        "agentStates": 0,
        "sharedData": 0,
        "pendingExpirations": 1,
    }


@pytest.mark.anyio
async def test_expired_shared_context_is_recreated_empty() -> None:
    clock = FakeClock()
    store = InMemoryContextStore(default_expiration=10.0, clock=clock)
    await store.update_shared_context("conv-1", {"session_data": {"k": "v"}})

    clock.advance(11.0)
    assert (await store.get_shared_context("conv-1")).session_data == {}


@pytest.mark.anyio
async def test_background_sweep_runs_and_stops() -> None:
    clock = FakeClock()
    store = InMemoryContextStore(default_expiration=1.0, cleanup_interval=0.01, clock=clock)
    await store.save_agent_state("agent", "conv-1", {"a": 1})
    clock.advance(5.0)

    store.start()
    assert store.running
    for _ in range(100):
        if store.get_stats()["agentStates"] == 0:
            break
        await asyncio.sleep(0.01)
    await store.stop()

    assert not store.running
    assert store.get_stats()["agentStates"] == 0


@pytest.mark.anyio
async def test_concurrent_updates_to_one_conversation_all_land() -> None:
    store = InMemoryContextStore()

    async def record(index: int) -> None:
        await store.append_history("conv-1", f"agent-{index}", index=index)

    await asyncio.gather(*(record(index) for index in range(25)))

    history = (await store.get_shared_context("conv-1")).agent_history
    assert sorted(entry.context["index"] for entry in history) == list(range(25))
