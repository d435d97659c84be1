"""
Message model for storing individual chat messages.
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
import enum
from chatrelay.db.database import Base
from chatrelay.models.conversation import _utcnow


class MessageRole(str, enum.Enum):
    """Enum for message roles"""
    USER = "user"
    ASSISTANT = "assistant"


class Message(Base):
    """
    Message table to store individual messages within conversations.
    Rows are written once and never updated.

    Fields:
        id: Primary key
        conversation_id: Foreign key to parent conversation
        role: Author of the message (user or assistant)
        content: The actual message content
        created_at: Timestamp when message was created
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        String(32), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(
        Enum(MessageRole, name="message_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        content_preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"<Message(id={self.id}, role={self.role}, content='{content_preview}')>"
