# chat router - supportive wellness chat with sentiment gating

import logging

from fastapi import APIRouter, Depends, Query

from sahara.dependencies import get_current_user, get_services
from sahara.models.chat import ChatHistoryMessage, ChatHistoryResponse, ChatMessageRequest, ChatReply, ChatSession
from sahara.services.container import Services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/message", response_model=ChatReply)
async def send_message(
    body: ChatMessageRequest,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """reply to a chat message, starting a session when none is given"""
    result = await services.chat.process_message(current_user["id"], body.message, body.session_id)
    return ChatReply(**result)


@router.get("/history/{session_id}", response_model=ChatHistoryResponse)
async def get_chat_history(
    session_id: str,
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    messages = await services.chat.history(session_id, current_user["id"], limit)
    history = [
        ChatHistoryMessage(
            id=m["entry_id"],
            role=m.get("role", "user"),
            content=m["content"],
            created_at=m["created_at"],
            sentiment=m.get("sentiment"),
        )
        for m in messages
    ]
    return ChatHistoryResponse(session_id=session_id, history=history)


@router.get("/sessions", response_model=list[ChatSession])
async def get_sessions(
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """the caller's chat sessions, most recent first"""
    sessions = await services.chat.sessions(current_user["id"])
    return [
        ChatSession(
            id=s["session_id"],
            last_message=s.get("last_message", ""),
            last_message_at=s.get("last_message_at", ""),
            message_count=s.get("message_count", 0),
        )
        for s in sessions
    ]
