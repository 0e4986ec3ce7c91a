"""Orchestrator routing conversational turns to agents and streaming their events.

Session state (active agent, pending override, phase) is kept per conversation
in ``ConversationSession`` objects, so concurrent conversations never share
mutable routing state. Turns on the same conversation are serialised by the
session lock; turns on different conversations run concurrently. Ended
conversations leave only a marker behind, and both markers and idle sessions
are dropped by the context store sweep once its TTL has passed.

Every event a caller receives has first been handed to the event store. Writes
are shielded from cancellation so a caller disconnecting mid-write cannot leave
a partial record behind.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from agent_router.agents.base import Agent
from agent_router.core.context_store import InMemoryContextStore
from agent_router.core.errors import ConversationEndedError
from agent_router.core.events import (
    AgentComplete,
    AgentEvent,
    AgentStart,
    AgentSwitch,
    ConversationEnd,
    ErrorEvent,
    is_terminal,
)
from agent_router.core.models import (
    ChatMessage,
    ConversationContext,
    ConversationPhase,
    ExecutionConfig,
    ExecutionState,
)
from agent_router.orchestration.intent import IntentClassifier, KeywordIntentClassifier
from agent_router.orchestration.registry import AgentRegistry
from agent_router.services.event_store import EventStore

logger = logging.getLogger(__name__)

ROUTER_AGENT_ID = "router"
SYSTEM_AGENT_ID = "system"
NO_AGENT = "none"

NO_AGENT_MESSAGE = "No suitable agent found for this request. Please try rephrasing your message."


@dataclass
class ConversationSession:
    """Routing state owned by a single conversation."""

    conversation_id: str
    user_id: str = ""
    phase: ConversationPhase = ConversationPhase.IDLE
    current_agent_id: Optional[str] = None
    pending_agent_id: Optional[str] = None
    pending_reason: str = ""
    agent_snapshot: Dict[str, Any] = field(default_factory=dict)
    turns: int = 0
    last_active: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class Orchestrator:
    """Coordinate agent selection, hand-offs and event streaming per conversation."""

    def __init__(
        self,
        *,
        registry: AgentRegistry,
        context_store: InMemoryContextStore,
        event_store: EventStore,
        intent_classifier: Optional[IntentClassifier] = None,
    ) -> None:
        self._registry = registry
        self._context_store = context_store
        self._event_store = event_store
        self._classifier = intent_classifier or KeywordIntentClassifier()
        self._sessions: Dict[str, ConversationSession] = {}
        self._ended: Dict[str, float] = {}
        context_store.add_sweep_hook(self.prune_sessions)
        logger.info("Orchestrator initialized with %d agents", registry.agent_count)

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def context_store(self) -> InMemoryContextStore:
        return self._context_store

    def get_session(self, conversation_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(conversation_id)

    def is_ended(self, conversation_id: str) -> bool:
        expires_at = self._ended.get(conversation_id)
        return expires_at is not None and not self._context_store.now() > expires_at

    def _touch(self, session: ConversationSession) -> None:
        session.last_active = self._context_store.now()

    # ------------------------------------------------------------------
    # Public lifecycle
    # ------------------------------------------------------------------

    async def start_conversation(
        self, conversation_id: str, user_id: Optional[str] = None
    ) -> ConversationSession:
        """Open (or reopen after it ended) the conversation's session. Idempotent."""
        session = self._sessions.get(conversation_id)
        if session is None or session.phase is ConversationPhase.ENDED:
            session = ConversationSession(conversation_id=conversation_id, user_id=user_id or "")
            self._sessions[conversation_id] = session
            self._ended.pop(conversation_id, None)
            logger.info(
                "Starting conversation %s (%d agents available)",
                conversation_id,
                self._registry.agent_count,
            )
        elif user_id:
            session.user_id = user_id
        self._touch(session)

        shared = await self._context_store.get_shared_context(conversation_id)
        if user_id and shared.user_id != user_id:
            await self._context_store.update_shared_context(conversation_id, {"user_id": user_id})
        return session

    async def switch_agent(
        self, conversation_id: str, agent_id: str, reason: str = "manual_switch"
    ) -> None:
        """Route the conversation's next turn to ``agent_id`` regardless of intent."""
        agent = self._registry.require_agent(agent_id)
        session = self._sessions.get(conversation_id)
        if session is None:
            if self.is_ended(conversation_id):
                raise ConversationEndedError(conversation_id)
            session = await self.start_conversation(conversation_id)
        if session.phase is ConversationPhase.ENDED:
            raise ConversationEndedError(conversation_id)
        self._touch(session)

        logger.info(
            "Manual agent switch requested for %s: %s -> %s (%s)",
            conversation_id,
            session.current_agent_id or NO_AGENT,
            agent.id,
            reason,
        )
        session.pending_agent_id = agent.id
        session.pending_reason = reason

    async def end_conversation(self, conversation_id: str) -> ConversationEnd:
        """Close the conversation, snapshotting the active agent's state.

        The session is dropped; only an ended marker is kept, for as long as the
        context store keeps the conversation's shared context.
        """
        session = self._sessions.get(conversation_id)
        if session is None:
            if self.is_ended(conversation_id):
                return ConversationEnd()
            session = ConversationSession(conversation_id=conversation_id)

        async with session.lock:
            if session.phase is ConversationPhase.ENDED:
                return ConversationEnd()

            final_agent = session.current_agent_id
            logger.info("Ending conversation %s (final agent %s)", conversation_id, final_agent)
            if final_agent is not None:
                await self._snapshot(session, final_agent)
            await self._context_store.append_history(
                conversation_id,
                SYSTEM_AGENT_ID,
                action="conversation_ended",
                finalAgent=final_agent,
            )
            session.phase = ConversationPhase.ENDED
            session.current_agent_id = None
            session.pending_agent_id = None
            session.agent_snapshot = {}
            if self._sessions.get(conversation_id) is session:
                del self._sessions[conversation_id]
            self._ended[conversation_id] = self._context_store.now() + self._context_store.default_expiration
            return await self._emit(ConversationEnd(), conversation_id)

    async def process_message(
        self, message: str, context: ConversationContext
    ) -> AsyncIterator[AgentEvent]:
        """Route one user message and stream the resulting events."""
        conversation_id = context.conversation_id
        session = self._sessions.get(conversation_id)
        if session is None and not self.is_ended(conversation_id):
            session = await self.start_conversation(conversation_id, context.user_id)
        if session is None:
            yield await self._ended_error(conversation_id)
            return

        async with session.lock:
            if session.phase is ConversationPhase.ENDED:
                yield await self._ended_error(conversation_id)
                return

            if context.user_id:
                session.user_id = context.user_id
            self._touch(session)
            logger.info(
                "Processing message in conversation %s (length=%d, current agent=%s)",
                conversation_id,
                len(message),
                session.current_agent_id,
            )
            try:
                async for event in self._run_turn(session, message, context):
                    yield event
                session.turns += 1
            finally:
                self._touch(session)

    async def prune_sessions(self) -> int:
        """Drop sessions idle past the context TTL and expired ended markers.

        Sessions whose lock is held are skipped. Returns how many sessions were
        dropped.
        """
        now = self._context_store.now()
        ttl = self._context_store.default_expiration
        pruned = 0
        for conversation_id, session in list(self._sessions.items()):
            if session.lock.locked() or not now > session.last_active + ttl:
                continue
            del self._sessions[conversation_id]
            pruned += 1
        for conversation_id, expires_at in list(self._ended.items()):
            if now > expires_at:
                del self._ended[conversation_id]
        if pruned:
            logger.info("Pruned %d idle conversations (%d remaining)", pruned, len(self._sessions))
        return pruned

    def get_conversation_stats(self, conversation_id: str) -> Dict[str, Any]:
        session = self._sessions.get(conversation_id)
        phase = session.phase.name if session else None
        if session is None and self.is_ended(conversation_id):
            phase = ConversationPhase.ENDED.name
        return {
            "conversationId": conversation_id,
            "phase": phase,
            "currentAgent": session.current_agent_id if session else None,
            "pendingAgent": session.pending_agent_id if session else None,
            "turns": session.turns if session else 0,
            "agentCount": self._registry.agent_count,
            "activeConversations": len(self._sessions),
            "contextStoreStats": self._context_store.get_stats(),
        }

    # ------------------------------------------------------------------
    # Turn handling
    # ------------------------------------------------------------------

    async def _run_turn(
        self, session: ConversationSession, message: str, context: ConversationContext
    ) -> AsyncIterator[AgentEvent]:
        conversation_id = session.conversation_id
        try:
            target, reason = await self._resolve_target(session, message, context)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Intent classification failed in conversation %s", conversation_id)
            yield await self._emit(
                ErrorEvent(error=f"Intent classification failed: {exc}", agent_id=ROUTER_AGENT_ID),
                conversation_id,
            )
            return

        if target is None:
            yield await self._emit(ErrorEvent(error=NO_AGENT_MESSAGE, agent_id=ROUTER_AGENT_ID), conversation_id)
            return

        try:
            if target.id != session.current_agent_id:
                async for event in self._hand_off(session, target, reason):
                    yield event
            else:
                await self._ensure_initialized(target, session.user_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Hand-off to %s failed in conversation %s", target.id, conversation_id)
            session.current_agent_id = None
            session.phase = ConversationPhase.IDLE
            yield await self._emit(ErrorEvent(error=str(exc) or type(exc).__name__, agent_id=target.id), conversation_id)
            return

        async for event in self._execute_with_agent(session, target, message, context):
            yield event

    async def _resolve_target(
        self, session: ConversationSession, message: str, context: ConversationContext
    ) -> Tuple[Optional[Agent], str]:
        if session.pending_agent_id is not None:
            agent_id, reason = session.pending_agent_id, session.pending_reason
            session.pending_agent_id = None
            agent = self._registry.get_agent(agent_id)
            if agent is not None:
                return agent, reason
            logger.warning("Requested agent %s was unregistered; falling back to intent routing", agent_id)

        intent = await self._classifier.classify(message, context)
        logger.debug("Classified message in %s as %s", session.conversation_id, intent)
        return self._registry.find_agent_for_intent(intent, context), "intent_change"

    async def _hand_off(
        self, session: ConversationSession, target: Agent, reason: str
    ) -> AsyncIterator[AgentEvent]:
        conversation_id = session.conversation_id
        previous = session.current_agent_id
        session.phase = ConversationPhase.SWITCHING
        logger.info(
            "Switching agents in %s: %s -> %s (%s)",
            conversation_id,
            previous or NO_AGENT,
            target.id,
            reason,
        )

        if previous is not None:
            snapshot = await self._snapshot(session, previous)
            await self._context_store.append_history(
                conversation_id, previous, action="agent_switched_out", reason=reason, state=snapshot
            )
        yield await self._emit(
            AgentSwitch(from_agent=previous or NO_AGENT, to_agent=target.id, reason=reason),
            conversation_id,
        )

        await self._ensure_initialized(target, session.user_id)
        session.current_agent_id = target.id
        session.agent_snapshot = {}
        await self._context_store.append_history(
            conversation_id, target.id, action="agent_switched_in", reason=reason
        )
        yield await self._emit(AgentStart(agent_id=target.id, agent_name=target.name), conversation_id)

    async def _execute_with_agent(
        self,
        session: ConversationSession,
        agent: Agent,
        message: str,
        context: ConversationContext,
    ) -> AsyncIterator[AgentEvent]:
        conversation_id = session.conversation_id
        state = ExecutionState(
            conversation_id=conversation_id,
            user_id=session.user_id,
            messages=[*context.messages, ChatMessage(role="user", content=message)],
            shared_context=await self._context_store.get_shared_context(conversation_id),
            agent_state=await self._context_store.get_agent_state(agent.id, conversation_id),
            shared_data=await self._context_store.get_shared_data(agent.id),
        )
        session.phase = ConversationPhase.AGENT_ACTIVE
        logger.info("Executing with agent %s in conversation %s", agent.id, conversation_id)

        outcome = "completed"
        terminal: Optional[AgentEvent] = None
        stream = agent.execute(state, ExecutionConfig(stream=True, context_store=self._context_store))
        try:
            async for event in stream:
                if isinstance(event, AgentComplete):
                    session.agent_snapshot = dict(event.final_state)
                elif event.type == "tool_execution":
                    logger.debug("Agent %s executing tool %s", agent.id, event.tool_name)
                yield await self._emit(event, conversation_id)
                if is_terminal(event):
                    terminal = event
                    break
        except Exception as exc:  # noqa: BLE001
            logger.exception("Agent %s failed in conversation %s", agent.id, conversation_id)
            outcome = "failed"
            terminal = ErrorEvent(error=str(exc) or "Agent execution failed", agent_id=agent.id)
            yield await self._emit(terminal, conversation_id)
        finally:
            await stream.aclose()

        if terminal is None:
            yield await self._emit(AgentComplete(agent_id=agent.id, final_state=session.agent_snapshot), conversation_id)
        elif isinstance(terminal, ErrorEvent):
            outcome = "failed"

        await self._context_store.append_history(
            conversation_id, agent.id, action="turn_completed", outcome=outcome
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ended_error(self, conversation_id: str) -> AgentEvent:
        return await self._emit(
            ErrorEvent(error=str(ConversationEndedError(conversation_id)), agent_id=SYSTEM_AGENT_ID),
            conversation_id,
        )

    async def _ensure_initialized(self, agent: Agent, user_id: str) -> None:
        if not agent.is_initialized_for(user_id):
            await agent.initialize(user_id, agent.default_config())

    async def _snapshot(self, session: ConversationSession, agent_id: str) -> Dict[str, Any]:
        """Persist the agent's state, overlaying what it reported during this session."""
        stored = await self._context_store.get_agent_state(agent_id, session.conversation_id)
        snapshot = {**stored, **session.agent_snapshot}
        await self._context_store.save_agent_state(agent_id, session.conversation_id, snapshot)
        return snapshot

    async def _emit(self, event: AgentEvent, conversation_id: str) -> AgentEvent:
        """Record ``event`` and hand it back for forwarding."""
        write = asyncio.ensure_future(self._persist(event, conversation_id))
        await asyncio.shield(write)
        return event

    async def _persist(self, event: AgentEvent, conversation_id: str) -> None:
        try:
            await self._event_store.save_event(event, conversation_id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to save %s event for conversation %s", event.type, conversation_id)
