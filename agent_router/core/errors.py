"""Exceptions raised by the routing core."""
from __future__ import annotations


class AgentRouterError(Exception):
    """Base class for routing core errors."""


class AgentConfigurationError(AgentRouterError):
    """Raised at registration time when an agent is misconfigured."""


class DuplicateAgentError(AgentConfigurationError):
    """Raised when an agent id is registered twice."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent with ID '{agent_id}' is already registered")
        self.agent_id = agent_id


class AgentNotFoundError(AgentRouterError, KeyError):
    """Raised when a caller names an agent the registry does not know."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent '{agent_id}' not found in registry")
        self.agent_id = agent_id

    def __str__(self) -> str:
        return self.args[0]


class ConversationEndedError(AgentRouterError):
    """Raised when an ended conversation is used without being restarted."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' has ended; start it again first")
        self.conversation_id = conversation_id
