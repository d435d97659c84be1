"""
Conversation endpoints for listing, loading, renaming and deleting chats.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from chatrelay.api.deps import get_chat_store, get_current_active_user
from chatrelay.models.user import User
from chatrelay.schemas.chat import ConversationResponse, ConversationUpdate, MessageResponse
from chatrelay.services.chat_store import ChatStore


router = APIRouter(prefix="/api/conversations", tags=["Conversations"])


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Conversation not found"
    )


@router.get("", response_model=List[ConversationResponse])
async def list_conversations(
    current_user: User = Depends(get_current_active_user),
    store: ChatStore = Depends(get_chat_store)
):
    """
    Get all conversations for the current user, most recently updated first.
    """
    conversations = await store.list_conversations(current_user.id)
    return [ConversationResponse.model_validate(conv) for conv in conversations]


@router.get("/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    conversation_id: str,
    current_user: User = Depends(get_current_active_user),
    store: ChatStore = Depends(get_chat_store)
):
    """
    Get the messages of a conversation in the order they were written.
    """
    conversation = await store.get_conversation(conversation_id, current_user.id)
    if conversation is None:
        raise _not_found()

    messages = await store.list_messages(conversation_id)
    return [MessageResponse.model_validate(msg) for msg in messages]


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def rename_conversation(
    conversation_id: str,
    update: ConversationUpdate,
    current_user: User = Depends(get_current_active_user),
    store: ChatStore = Depends(get_chat_store)
):
    """
    Rename a conversation.
    """
    conversation = await store.update_conversation_title(conversation_id, current_user.id, update.title)
    if conversation is None:
        raise _not_found()

    return ConversationResponse.model_validate(conversation)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_active_user),
    store: ChatStore = Depends(get_chat_store)
):
    """
    Delete a conversation. Its messages are removed with it.
    """
    deleted = await store.delete_conversation(conversation_id, current_user.id)
    if not deleted:
        raise _not_found()

    return {"message": "Conversation deleted successfully"}
