"""Chat endpoint streaming agent events as Server-Sent Events."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from agent_router.core.models import ChatMessage, ConversationContext
from agent_router.core.streaming import SSE_HEADERS, SSE_MEDIA_TYPE, sse_stream
from agent_router.orchestration.orchestrator import Orchestrator
from agent_router.runtime import get_orchestrator

router = APIRouter(prefix="/conversations", tags=["chat"])


class HistoryMessage(BaseModel):
    role: str
    content: str
    agent_id: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User message to route")
    user_id: str = Field(default="anonymous", description="User sending the message")
    history: List[HistoryMessage] = Field(
        default_factory=list, description="Earlier messages, oldest first"
    )


@router.post("/{conversation_id}/messages")
async def send_message(
    conversation_id: str,
    request: ChatRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Route a message and stream every resulting event as an SSE frame."""
    context = ConversationContext(
        conversation_id=conversation_id,
        user_id=request.user_id,
        messages=[
            ChatMessage(role=item.role, content=item.content, agent_id=item.agent_id)
            for item in request.history
        ],
    )
    events = orchestrator.process_message(request.message, context)
    return StreamingResponse(sse_stream(events), media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)
