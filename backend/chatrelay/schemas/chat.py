"""
Pydantic schemas for chat requests and conversation responses.
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from chatrelay.models.message import MessageRole


class ChatRequest(BaseModel):
    """Request schema for sending a chat message"""
    message: str = Field(..., min_length=1)
    conversationId: Optional[str] = None


class ChatError(BaseModel):
    """Body of a chat request that failed before streaming started"""
    error: str


class MessageResponse(BaseModel):
    """Response schema for a stored message"""
    id: int
    conversation_id: str
    role: MessageRole
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    """Response schema for a conversation"""
    id: str
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ConversationUpdate(BaseModel):
    """Request schema for renaming a conversation"""
    title: str = Field(..., min_length=1, max_length=200)
