"""Core data models shared across orchestrator components."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict, List, Optional


class ConversationPhase(Enum):
    """Lifecycle states for a conversation managed by the orchestrator."""

    IDLE = auto()
    AGENT_ACTIVE = auto()
    SWITCHING = auto()
    ENDED = auto()


class ToolStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class AgentConfig:
    """Configuration handed to an agent when it is initialized for a user."""

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    intents: List[str] = field(default_factory=list)
    priority: int = 0
    enabled: bool = True
    tools: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ChatMessage:
    """One entry of a conversation's message history."""

    role: str
    content: str
    agent_id: Optional[str] = None
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None

    def to_llm(self) -> Dict[str, Any]:
        """Render the message in the chat-completions wire format."""
        payload: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_llm() for call in self.tool_calls]
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass(slots=True)
class ConversationContext:
    """Per-turn context supplied by the caller; not owned by the core."""

    conversation_id: str
    user_id: str
    messages: List[ChatMessage] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AgentHistoryEntry:
    agent_id: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {"agentId": self.agent_id, "timestamp": self.timestamp, "context": self.context}


@dataclass(slots=True)
class SharedContext:
    """Conversation-scoped state visible to every agent in the conversation."""

    conversation_id: str
    user_id: str = ""
    session_data: Dict[str, Any] = field(default_factory=dict)
    agent_history: List[AgentHistoryEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "userId": self.user_id,
            "sessionData": self.session_data,
            "agentHistory": [entry.to_dict() for entry in self.agent_history],
        }


@dataclass(slots=True)
class ExecutionConfig:
    """Options for a single agent run."""

    stream: bool = True
    timeout: Optional[float] = None
    context_store: Optional[Any] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ExecutionState:
    """Input assembled by the orchestrator for one agent turn."""

    conversation_id: str
    user_id: str
    messages: List[ChatMessage]
    shared_context: SharedContext
    agent_state: Dict[str, Any] = field(default_factory=dict)
    shared_data: Dict[str, Any] = field(default_factory=dict)

    def latest_user_message(self) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if message.role == "user":
                return message
        return None


@dataclass(slots=True)
class ToolCall:
    """A structured request to run a tool on an agent's behalf."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_llm(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


@dataclass(slots=True)
class ToolResult:
    """Outcome of a tool call; `tool_call_id` matches the originating call."""

    tool_call_id: str
    tool_name: str
    content: str
    status: ToolStatus = ToolStatus.SUCCESS

    @property
    def ok(self) -> bool:
        return self.status is ToolStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "content": self.content,
            "status": self.status.value,
        }


@dataclass(slots=True)
class PendingNotice:
    """User-facing "working on it" line shown while a tool runs."""

    tool_name: str
    message: str
