"""Event persistence collaborators."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Protocol

from agent_router.core.events import AgentEvent

logger = logging.getLogger(__name__)


class EventStore(Protocol):
    async def save_event(self, event: AgentEvent, conversation_id: str) -> None:
        """Durably record ``event`` against ``conversation_id``."""


class InMemoryEventStore:
    """Keeps the wire form of every event, grouped by conversation."""

    def __init__(self) -> None:
        self._events: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def save_event(self, event: AgentEvent, conversation_id: str) -> None:
        async with self._lock:
            self._events[conversation_id].append(event.to_dict())
        logger.debug("Stored %s event for conversation %s", event.type, conversation_id)

    def events_for(self, conversation_id: str) -> List[Dict[str, Any]]:
        return list(self._events.get(conversation_id, ()))

    def clear(self) -> None:
        self._events.clear()
