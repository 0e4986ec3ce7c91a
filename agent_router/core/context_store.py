"""In-memory shared context store with per-key locking and TTL expiry.

Three key spaces live here:

* shared contexts, one per conversation, visible to every agent;
* agent states, private to one ``(agent_id, conversation_id)`` pair;
* shared data, handed from one agent to another (``(from_agent, to_agent)``).

Every key space carries an expiration timestamp per entry. Reads treat an
expired entry as absent immediately; a background sweep purges expired entries
so memory is reclaimed even for keys nobody reads again.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from .models import AgentHistoryEntry, SharedContext

logger = logging.getLogger(__name__)

DEFAULT_EXPIRATION = 60 * 60.0
CLEANUP_INTERVAL = 5 * 60.0

StateKey = Tuple[str, str]


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float


class _KeyedLocks:
    """Asyncio locks created per key and dropped once no task holds or awaits them."""

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                self._users.pop(key, None)
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class InMemoryContextStore:
    """Process-local implementation of the shared context store."""

    def __init__(
        self,
        *,
        default_expiration: float = DEFAULT_EXPIRATION,
        cleanup_interval: float = CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_expiration = default_expiration
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._shared_contexts: Dict[str, _Entry] = {}
        self._agent_states: Dict[StateKey, _Entry] = {}
        self._shared_data: Dict[StateKey, _Entry] = {}
        self._locks = _KeyedLocks()
        self._sweeper: Optional[asyncio.Task[None]] = None
        self._sweep_hooks: List[Callable[[], Awaitable[int]]] = []

    # ------------------------------------------------------------------
    # Shared context
    # ------------------------------------------------------------------

    async def get_shared_context(self, conversation_id: str) -> SharedContext:
        """Return the conversation's shared context, creating it on first access."""
        async with self._locks.hold(("ctx", conversation_id)):
            context = self._touch_shared_context(conversation_id)
            return copy.deepcopy(context)

    async def update_shared_context(self, conversation_id: str, updates: Mapping[str, Any]) -> None:
        """Merge ``updates`` into the shared context.

        ``session_data`` is merged slot by slot, ``agent_history`` entries are
        appended, and any other known field is replaced. Updates are validated
        in full before anything is written, so a rejected update changes nothing.
        """
        session_data: Dict[str, Any] = {}
        history: List[AgentHistoryEntry] = []
        user_id: Optional[str] = None
        for name, value in updates.items():
            if name == "session_data":
                session_data.update(copy.deepcopy(dict(value or {})))
            elif name == "agent_history":
                history.extend(self._history_entries(value or ()))
            elif name == "user_id":
                user_id = value or ""
            elif name == "conversation_id":
                continue
            else:
                raise ValueError(f"Unknown shared context field: {name}")

        async with self._locks.hold(("ctx", conversation_id)):
            context = self._touch_shared_context(conversation_id)
            context.session_data.update(session_data)
            context.agent_history.extend(history)
            if user_id is not None:
                context.user_id = user_id
        logger.debug(
            "Updated shared context for conversation %s (fields=%s)",
            conversation_id,
            sorted(updates),
        )

    async def append_history(self, conversation_id: str, agent_id: str, **context: Any) -> None:
        await self.update_shared_context(
            conversation_id,
            {"agent_history": [AgentHistoryEntry(agent_id=agent_id, context=context)]},
        )

    def _touch_shared_context(self, conversation_id: str) -> SharedContext:
        now = self._clock()
        entry = self._shared_contexts.get(conversation_id)
        if entry is None or self._expired(entry, now):
            entry = _Entry(SharedContext(conversation_id=conversation_id), 0.0)
            self._shared_contexts[conversation_id] = entry
            logger.debug("Created new shared context for conversation %s", conversation_id)
        entry.expires_at = now + self.default_expiration
        return entry.value

    @staticmethod
    def _history_entries(values: Iterable[Any]) -> List[AgentHistoryEntry]:
        entries: List[AgentHistoryEntry] = []
        for value in values:
            if isinstance(value, AgentHistoryEntry):
                entries.append(copy.deepcopy(value))
                continue
            if not isinstance(value, Mapping) or not value.get("agent_id"):
                raise ValueError(f"Agent history entry needs an agent_id: {value!r}")
            entries.append(
                AgentHistoryEntry(
                    agent_id=value["agent_id"],
                    context=copy.deepcopy(dict(value.get("context") or {})),
                    **({"timestamp": value["timestamp"]} if "timestamp" in value else {}),
                )
            )
        return entries

    # ------------------------------------------------------------------
    # Agent state
    # ------------------------------------------------------------------

    async def get_agent_state(self, agent_id: str, conversation_id: str) -> Dict[str, Any]:
        """Return the agent's private state, or an empty dict when absent or expired."""
        key = (agent_id, conversation_id)
        async with self._locks.hold(("state", key)):
            entry = self._agent_states.get(key)
            if entry is None or self._expired(entry, self._clock()):
                return {}
            return copy.deepcopy(entry.value)

    async def save_agent_state(self, agent_id: str, conversation_id: str, state: Mapping[str, Any]) -> None:
        """Overwrite the agent's private state and restart its TTL."""
        key = (agent_id, conversation_id)
        async with self._locks.hold(("state", key)):
            self._agent_states[key] = _Entry(
                copy.deepcopy(dict(state)), self._clock() + self.default_expiration
            )
        logger.debug("Saved agent state for %s in conversation %s", agent_id, conversation_id)

    # ------------------------------------------------------------------
    # Agent to agent hand-off data
    # ------------------------------------------------------------------

    async def share_data(self, from_agent: str, to_agent: str, data: Any) -> None:
        """Expose ``data`` to ``to_agent``; replaces anything previously shared on this pair."""
        key = (from_agent, to_agent)
        async with self._locks.hold(("share", key)):
            self._shared_data[key] = _Entry(
                copy.deepcopy(data), self._clock() + self.default_expiration / 2
            )
        logger.debug("Agent %s shared data with %s", from_agent, to_agent)

    async def get_shared_data(self, to_agent: str) -> Dict[str, Any]:
        """Collect all live data addressed to ``to_agent``, keyed by sender."""
        now = self._clock()
        collected: Dict[str, Any] = {}
        for (from_agent, target), entry in list(self._shared_data.items()):
            if target != to_agent or self._expired(entry, now):
                continue
            collected[from_agent] = copy.deepcopy(entry.value)
        return collected

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def now(self) -> float:
        return self._clock()

    @staticmethod
    def _expired(entry: _Entry, now: float) -> bool:
        return now > entry.expires_at

    def add_sweep_hook(self, hook: Callable[[], Awaitable[int]]) -> None:
        """Run ``hook`` after every sweep; it returns how many items it dropped."""
        self._sweep_hooks.append(hook)

    async def sweep(self) -> int:
        """Remove every expired entry and return how many were purged.

        Entries are removed one at a time with a yield to the event loop in
        between, and expiry is re-checked right before each removal.
        """
        removed = 0
        spaces: Tuple[Tuple[str, Dict[Any, _Entry]], ...] = (
            ("ctx", self._shared_contexts),
            ("state", self._agent_states),
            ("share", self._shared_data),
        )
        for space, entries in spaces:
            for key in list(entries):
                entry = entries.get(key)
                if entry is None or not self._expired(entry, self._clock()):
                    continue
                entries.pop(key, None)
                logger.debug("Expired %s entry %s", space, key)
                removed += 1
                await asyncio.sleep(0)
        if removed:
            logger.info("Cleaned up %d expired context items (%d remaining)", removed, self._size())
        for hook in self._sweep_hooks:
            await hook()
        return removed

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            try:
                await self.sweep()
            except Exception:  # noqa: BLE001
                logger.exception("Context store sweep failed")

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_forever())
        logger.debug("Started context store cleanup every %.0fs", self.cleanup_interval)

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to exit."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _size(self) -> int:
        return len(self._shared_contexts) + len(self._agent_states) + len(self._shared_data)

    def get_stats(self) -> Dict[str, int]:
        return {
            "sharedContexts": len(self._shared_contexts),
            "agentStates": len(self._agent_states),
            "sharedData": len(self._shared_data),
            "pendingExpirations": self._size(),
        }

    def clear(self) -> None:
        self._shared_contexts.clear()
        self._agent_states.clear()
        self._shared_data.clear()
