"""
Models package - exports all database models.
"""
from chatrelay.models.user import User
from chatrelay.models.conversation import Conversation
from chatrelay.models.message import Message, MessageRole

__all__ = [
    "User",
    "Conversation",
    "Message",
    "MessageRole",
]
