# chat models - wellness chat request, reply and history schemas

from typing import Optional
from pydantic import BaseModel, Field

from sahara.models.insight import MessageSentiment


class ChatMessageRequest(BaseModel):
    message: str = Field(..., description="user message")
    session_id: Optional[str] = Field(None, alias="sessionId")

    model_config = {"populate_by_name": True}


class ChatReply(BaseModel):
    response: str
    session_id: str = Field(..., alias="sessionId")
    sentiment: MessageSentiment
    timestamp: str

    model_config = {"populate_by_name": True}


class ChatHistoryMessage(BaseModel):
    id: str
    role: str
    content: str
    created_at: str = Field(..., alias="createdAt")
    sentiment: Optional[MessageSentiment] = None

    model_config = {"populate_by_name": True}


class ChatHistoryResponse(BaseModel):
    session_id: str = Field(..., alias="sessionId")
    history: list[ChatHistoryMessage]

    model_config = {"populate_by_name": True}


class ChatSession(BaseModel):
    id: str
    last_message: str = Field("", alias="lastMessage")
    last_message_at: str = Field("", alias="lastMessageAt")
    message_count: int = Field(0, alias="messageCount")

    model_config = {"populate_by_name": True}
