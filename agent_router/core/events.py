"""Event vocabulary streamed from agents to callers.

Every event is immutable and carries a ``type`` discriminator. ``to_dict``
produces the wire representation (camelCase keys) relayed verbatim by the
transport layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Optional, Union


@dataclass(frozen=True, slots=True)
class AgentStart:
    type: ClassVar[str] = "agent_start"

    agent_id: str
    agent_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "agentId": self.agent_id, "agentName": self.agent_name}


@dataclass(frozen=True, slots=True)
class AgentSwitch:
    type: ClassVar[str] = "agent_switch"

    from_agent: str
    to_agent: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "fromAgent": self.from_agent,
            "toAgent": self.to_agent,
            "reason": self.reason,
        }


@dataclass(frozen=True, slots=True)
class ContentChunk:
    type: ClassVar[str] = "content_chunk"

    content: str
    agent_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.content, "agentId": self.agent_id}


@dataclass(frozen=True, slots=True)
class ToolExecution:
    type: ClassVar[str] = "tool_execution"

    tool_name: str
    agent_id: str
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {"type": self.type, "toolName": self.tool_name, "agentId": self.agent_id}
        if self.message is not None:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True, slots=True)
class ToolResultEvent:
    type: ClassVar[str] = "tool_result"

    result: Any
    tool_name: str
    agent_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "result": self.result,
            "toolName": self.tool_name,
            "agentId": self.agent_id,
        }


@dataclass(frozen=True, slots=True)
class AgentComplete:
    type: ClassVar[str] = "agent_complete"

    agent_id: str
    final_state: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "agentId": self.agent_id, "finalState": self.final_state}


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    type: ClassVar[str] = "error"

    error: str
    agent_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "error": self.error, "agentId": self.agent_id}


@dataclass(frozen=True, slots=True)
class ConversationEnd:
    type: ClassVar[str] = "conversation_end"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


AgentEvent = Union[
    AgentStart,
    AgentSwitch,
    ContentChunk,
    ToolExecution,
    ToolResultEvent,
    AgentComplete,
    ErrorEvent,
    ConversationEnd,
]

TERMINAL_EVENT_TYPES = frozenset({AgentComplete.type, ErrorEvent.type, ConversationEnd.type})

_DECODERS: Dict[str, Callable[[Dict[str, Any]], AgentEvent]] = {
    AgentStart.type: lambda d: AgentStart(agent_id=d["agentId"], agent_name=d["agentName"]),
    AgentSwitch.type: lambda d: AgentSwitch(
        from_agent=d["fromAgent"], to_agent=d["toAgent"], reason=d["reason"]
    ),
    ContentChunk.type: lambda d: ContentChunk(content=d["content"], agent_id=d["agentId"]),
    ToolExecution.type: lambda d: ToolExecution(
        tool_name=d["toolName"], agent_id=d["agentId"], message=d.get("message")
    ),
    ToolResultEvent.type: lambda d: ToolResultEvent(
        result=d.get("result"), tool_name=d["toolName"], agent_id=d["agentId"]
    ),
    AgentComplete.type: lambda d: AgentComplete(
        agent_id=d["agentId"], final_state=d.get("finalState") or {}
    ),
    ErrorEvent.type: lambda d: ErrorEvent(error=d["error"], agent_id=d["agentId"]),
    ConversationEnd.type: lambda d: ConversationEnd(),
}


def is_terminal(event: AgentEvent) -> bool:
    """Return True for events that close a turn."""
    return event.type in TERMINAL_EVENT_TYPES


def event_from_dict(payload: Dict[str, Any]) -> AgentEvent:
    """Rebuild an event from its wire representation."""
    event_type = payload.get("type")
    decoder = _DECODERS.get(event_type)  # type: ignore[arg-type]
    if decoder is None:
        raise ValueError(f"Unknown event type: {event_type!r}")
    try:
        return decoder(payload)
    except KeyError as exc:
        raise ValueError(f"Event '{event_type}' is missing field {exc.args[0]!r}") from exc
