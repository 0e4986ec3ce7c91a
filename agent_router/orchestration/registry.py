"""In-memory directory of agents and intent-based agent lookup."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from agent_router.agents.base import Agent
from agent_router.core.errors import AgentNotFoundError, DuplicateAgentError
from agent_router.core.models import ConversationContext

logger = logging.getLogger(__name__)


def _intents_overlap(left: str, right: str) -> bool:
    left, right = left.lower().strip(), right.lower().strip()
    return bool(left and right) and (left in right or right in left)


class AgentRegistry:
    """Registered agents kept in registration order.

    When several agents can handle an intent the first registered one wins.
    With ``prefer_priority`` the highest ``priority`` wins instead, and
    registration order only breaks ties.
    """

    def __init__(self, *, prefer_priority: bool = False) -> None:
        self._agents: Dict[str, Agent] = {}
        self.prefer_priority = prefer_priority

    def register(self, agent: Agent) -> None:
        agent.validate_configuration()
        if agent.id in self._agents:
            raise DuplicateAgentError(agent.id)
        self._agents[agent.id] = agent
        logger.info("Registered agent: %s (%s)", agent.id, agent.name)

    def unregister(self, agent_id: str) -> bool:
        removed = self._agents.pop(agent_id, None) is not None
        if removed:
            logger.info("Unregistered agent: %s", agent_id)
        return removed

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def require_agent(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def has_agent(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def find_agent_for_intent(
        self, intent: str, context: Optional[ConversationContext] = None
    ) -> Optional[Agent]:
        capable: List[Agent] = []
        for agent in self._agents.values():
            try:
                if agent.can_handle(intent, context):
                    capable.append(agent)
            except Exception:  # noqa: BLE001
                logger.exception("Agent %s failed while matching intent %r", agent.id, intent)

        if not capable:
            logger.warning("No agent found for intent: %s", intent)
            return None
        if len(capable) == 1:
            return capable[0]

        chosen = capable[0]
        if self.prefer_priority:
            # max() keeps the first of equal priorities, i.e. registration order.
            chosen = max(capable, key=lambda agent: agent.priority)
        logger.info(
            "Multiple agents can handle intent %r (%s), selecting %s",
            intent,
            ", ".join(agent.id for agent in capable),
            chosen.id,
        )
        return chosen

    def list_agents(self) -> List[Agent]:
        return list(self._agents.values())

    def get_agents_for_intents(self, intents: Iterable[str]) -> List[Agent]:
        wanted = list(intents)
        return [
            agent
            for agent in self._agents.values()
            if any(_intents_overlap(intent, keyword) for intent in wanted for keyword in agent.intents)
        ]

    def get_agent_summaries(self) -> List[Dict[str, Any]]:
        return [agent.summary() for agent in self._agents.values()]

    @property
    def agent_count(self) -> int:
        return len(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def clear(self) -> None:
        count = len(self._agents)
        self._agents.clear()
        logger.info("Cleared %d agents from registry", count)
