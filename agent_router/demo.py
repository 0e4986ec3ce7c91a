"""CLI demonstration of a routed conversation streamed as SSE frames."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from agent_router.agents.product import ProductAgent
from agent_router.core.context_store import InMemoryContextStore
from agent_router.core.events import AgentStart, ContentChunk
from agent_router.core.models import ChatMessage, ConversationContext
from agent_router.core.streaming import encode_sse
from agent_router.orchestration.orchestrator import Orchestrator
from agent_router.orchestration.registry import AgentRegistry
from agent_router.services.event_store import InMemoryEventStore
from agent_router.services.listing_tools import listing_tools
from agent_router.services.tools import StaticToolResolver, ToolExecutor

_SCRIPT = (
    'Create a new product listing for "Walnut desk organizer"',
    "Please optimize the listing",
    "Publish it to the marketplace",
)


async def main() -> List[ChatMessage]:
    registry = AgentRegistry()
    registry.register(ProductAgent(ToolExecutor(StaticToolResolver(listing_tools()))))
    store = InMemoryContextStore()
    events = InMemoryEventStore()
    orchestrator = Orchestrator(registry=registry, context_store=store, event_store=events)

    conversation_id = "demo-conversation"
    await orchestrator.start_conversation(conversation_id, "demo-user")
    history: List[ChatMessage] = []

    for message in _SCRIPT:
        print(f">>> {message}")
        context = ConversationContext(conversation_id=conversation_id, user_id="demo-user", messages=list(history))
        reply: List[str] = []
        agent_id: Optional[str] = None
        async for event in orchestrator.process_message(message, context):
            print(encode_sse(event), end="")
            if isinstance(event, AgentStart):
                agent_id = event.agent_id
            elif isinstance(event, ContentChunk):
                agent_id = event.agent_id
                reply.append(event.content)
        history.append(ChatMessage(role="user", content=message))
        history.append(ChatMessage(role="assistant", content="".join(reply), agent_id=agent_id))

    end = await orchestrator.end_conversation(conversation_id)
    print(encode_sse(end), end="")
    print(f"Stored {len(events.events_for(conversation_id))} events; context store {store.get_stats()}")
    return history


def run() -> None:
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())


if __name__ == "__main__":
    run()
