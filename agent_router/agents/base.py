"""Base agent definition used by the orchestrator."""
from __future__ import annotations

import abc
import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Set

from agent_router.core.errors import AgentConfigurationError
from agent_router.core.events import (
    AgentComplete,
    AgentEvent,
    ContentChunk,
    ErrorEvent,
    ToolExecution,
    ToolResultEvent,
)
from agent_router.core.models import AgentConfig, ConversationContext, ExecutionConfig, ExecutionState

logger = logging.getLogger(__name__)


class Agent(abc.ABC):
    """Abstract agent: claims intents and streams events for a conversational turn.

    Subclasses set the identity attributes and implement ``execute`` as an
    async generator. Each call to ``execute`` starts a fresh run; runs are never
    resumed.
    """

    id: str = ""
    name: str = ""
    description: str = ""
    intents: Sequence[str] = ()
    tools: Sequence[str] = ()
    priority: int = 0

    def __init__(self) -> None:
        self._initialized_users: Set[str] = set()
        self._configs: Dict[str, AgentConfig] = {}

    @property
    def agent_id(self) -> str:
        return self.id

    def default_config(self) -> AgentConfig:
        return AgentConfig(
            id=self.id,
            name=self.name,
            description=self.description,
            intents=list(self.intents),
            priority=self.priority,
            tools=list(self.tools),
        )

    def validate_configuration(self) -> None:
        """Raise ``AgentConfigurationError`` when required identity fields are missing."""
        if not self.id:
            raise AgentConfigurationError("Agent ID is required")
        if not self.name:
            raise AgentConfigurationError(f"Agent '{self.id}' requires a name")
        if not self.intents:
            raise AgentConfigurationError(f"Agent '{self.id}' must declare at least one intent")
        if isinstance(self.tools, str) or not isinstance(self.tools, (list, tuple)):
            raise AgentConfigurationError(f"Agent '{self.id}' tools must be a list")

    async def initialize(self, user_id: str, config: Optional[AgentConfig] = None) -> None:
        """Prepare the agent for ``user_id``. Called once per user."""
        config = config or self.default_config()
        logger.info("Initializing agent %s for user %s (config %s)", self.id, user_id, config.version)
        self.validate_configuration()
        await self.on_initialize(user_id, config)
        self._configs[user_id] = config
        self._initialized_users.add(user_id)

    def is_initialized_for(self, user_id: str) -> bool:
        return user_id in self._initialized_users

    def config_for(self, user_id: str) -> Optional[AgentConfig]:
        return self._configs.get(user_id)

    async def on_initialize(self, user_id: str, config: AgentConfig) -> None:
        """Hook executed the first time the agent serves a user."""
        return None

    def can_handle(self, intent: str, context: Optional[ConversationContext] = None) -> bool:
        """Case-insensitive substring match, in either direction, against declared intents."""
        normalized = intent.lower().strip()
        if not normalized:
            return False
        for keyword in self.intents:
            candidate = keyword.lower().strip()
            if candidate and (candidate in normalized or normalized in candidate):
                return True
        return False

    @abc.abstractmethod
    def execute(self, state: ExecutionState, config: ExecutionConfig) -> AsyncIterator[AgentEvent]:
        """Run one turn and yield events as they are produced."""

    def content(self, text: str) -> ContentChunk:
        return ContentChunk(content=text, agent_id=self.id)

    def tool_execution(self, tool_name: str, message: Optional[str] = None) -> ToolExecution:
        return ToolExecution(tool_name=tool_name, agent_id=self.id, message=message)

    def tool_result(self, result: Any, tool_name: str) -> ToolResultEvent:
        return ToolResultEvent(result=result, tool_name=tool_name, agent_id=self.id)

    def complete(self, final_state: Optional[Dict[str, Any]] = None) -> AgentComplete:
        return AgentComplete(agent_id=self.id, final_state=dict(final_state or {}))

    def error(self, error: Exception | str) -> ErrorEvent:
        message = str(error) or type(error).__name__
        logger.error("Agent %s error: %s", self.id, message)
        return ErrorEvent(error=message, agent_id=self.id)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "intents": list(self.intents),
            "toolCount": len(self.tools),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"
