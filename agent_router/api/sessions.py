"""Conversation lifecycle routes: start, manual switch, end and inspection."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agent_router.core.errors import AgentNotFoundError, ConversationEndedError
from agent_router.orchestration.orchestrator import Orchestrator
from agent_router.runtime import get_orchestrator

router = APIRouter(prefix="/conversations", tags=["conversations"])


class StartRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, description="User owning the conversation")


class SwitchRequest(BaseModel):
    agent_id: str = Field(..., description="Agent that should handle the next turn")
    reason: str = Field(default="manual_switch", description="Reason reported in the agent_switch event")


class SessionResponse(BaseModel):
    conversation_id: str
    phase: str
    current_agent: Optional[str] = None
    pending_agent: Optional[str] = None


@router.post("/{conversation_id}/start", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_conversation(
    conversation_id: str,
    request: StartRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    session = await orchestrator.start_conversation(conversation_id, request.user_id)
    return SessionResponse(
        conversation_id=session.conversation_id,
        phase=session.phase.name,
        current_agent=session.current_agent_id,
    )


@router.post("/{conversation_id}/switch", response_model=SessionResponse)
async def switch_agent(
    conversation_id: str,
    request: SwitchRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    """Route the conversation's next message to a specific agent."""
    try:
        await orchestrator.switch_agent(conversation_id, request.agent_id, request.reason)
    except AgentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConversationEndedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    session = orchestrator.get_session(conversation_id)
    return SessionResponse(
        conversation_id=conversation_id,
        phase=session.phase.name,
        current_agent=session.current_agent_id,
        pending_agent=session.pending_agent_id,
    )


@router.post("/{conversation_id}/end")
async def end_conversation(
    conversation_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    event = await orchestrator.end_conversation(conversation_id)
    return event.to_dict()


@router.get("/{conversation_id}")
async def conversation_stats(
    conversation_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    if orchestrator.get_session(conversation_id) is None and not orchestrator.is_ended(conversation_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown conversation")
    return orchestrator.get_conversation_stats(conversation_id)
