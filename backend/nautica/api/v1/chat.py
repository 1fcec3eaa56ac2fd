from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional

from nautica.api.deps import get_orchestrator, optional_subject
from nautica.services.conversation_engine import ConversationOrchestrator

router = APIRouter()


class ChatMessageIn(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    messages: List[ChatMessageIn] = Field(default_factory=list)
    ownerScopeId: Optional[str] = None


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    subject_id: Optional[str] = Depends(optional_subject),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Run one chat turn and return the assistant message"""
    messages = [m.model_dump() for m in payload.messages]
    return await orchestrator.respond(
        messages,
        owner_scope_id=payload.ownerScopeId,
        subject_id=subject_id,
    )
