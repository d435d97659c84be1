"""
Conversation model for storing chat sessions.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from chatrelay.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_conversation_id() -> str:
    return uuid.uuid4().hex


class Conversation(Base):
    """
    Conversation table to store individual chat sessions.

    Fields:
        id: Opaque server-generated identifier, exposed to clients
        user_id: Foreign key to user who owns this conversation
        title: Conversation title (first message excerpt)
        created_at: When conversation was created
        updated_at: When the conversation was renamed or last received a message
    """
    __tablename__ = "conversations"

    id = Column(String(32), primary_key=True, default=_new_conversation_id)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False, default="New Chat")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # Relationships
    user = relationship("User", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )

    def __repr__(self):
        return f"<Conversation(id='{self.id}', title='{self.title}')>"
