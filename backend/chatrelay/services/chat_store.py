"""
Chat Store - persistence of conversations and messages.

Every operation runs in its own session and commits before returning, so
the relay can keep writing after the request-scoped session is gone.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatrelay.core.errors import ConversationNotFoundError, PersistenceError
from chatrelay.db.database import AsyncSessionLocal
from chatrelay.models import Conversation, Message, MessageRole


logger = logging.getLogger(__name__)


class ChatStore:
    """
    Insert/select operations over the conversations and messages tables.
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """
        Yield a session, commit when the block succeeds and translate
        database failures into PersistenceError.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except (SQLAlchemyError, OSError) as e:
                await session.rollback()
                logger.error("Store operation %s failed: %s", operation, e)
                raise PersistenceError(f"Failed to {operation}") from e

    async def insert_conversation(self, user_id: int, title: str) -> Conversation:
        """
        Create a conversation owned by the user.

        Args:
            user_id: Owner of the conversation
            title: Display title

        Returns:
            The stored Conversation with its generated id
        """
        async with self._transaction("create conversation") as session:
            conversation = Conversation(user_id=user_id, title=title)
            session.add(conversation)
            await session.flush()
        logger.info("Created conversation %s for user %s", conversation.id, user_id)
        return conversation

    async def get_conversation(self, conversation_id: str, user_id: int) -> Optional[Conversation]:
        """Return the conversation if it exists and belongs to the user."""
        async with self._transaction("load conversation") as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.id == conversation_id)
                .where(Conversation.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def insert_message(self, conversation_id: str, role: MessageRole, content: str) -> Message:
        """
        Append a message to a conversation and bump its update time.

        Args:
            conversation_id: Target conversation
            role: user or assistant
            content: Message text

        Returns:
            The stored Message

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            PersistenceError: If the write fails
        """
        async with self._transaction("save message") as session:
            result = await session.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=datetime.now(timezone.utc))
            )
            if result.rowcount == 0:
                raise ConversationNotFoundError("Conversation not found")

            message = Message(conversation_id=conversation_id, role=MessageRole(role), content=content)
            session.add(message)
            await session.flush()
        return message

    async def list_messages(self, conversation_id: str) -> List[Message]:
        """Messages of a conversation in creation order."""
        async with self._transaction("load messages") as session:
            result = await session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at, Message.id)
            )
            return list(result.scalars().all())

    async def list_conversations(self, user_id: int) -> List[Conversation]:
        """Conversations of a user, most recently updated first."""
        async with self._transaction("load conversations") as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
            )
            return list(result.scalars().all())

    async def delete_conversation(self, conversation_id: str, user_id: int) -> bool:
        """
        Delete a conversation and, through the cascade, its messages.

        Returns:
            False if the user owns no such conversation
        """
        async with self._transaction("delete conversation") as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.id == conversation_id)
                .where(Conversation.user_id == user_id)
            )
            conversation = result.scalar_one_or_none()
            if conversation is None:
                return False

            await session.delete(conversation)
        logger.info("Deleted conversation %s", conversation_id)
        return True

    async def update_conversation_title(
        self,
        conversation_id: str,
        user_id: int,
        title: str
    ) -> Optional[Conversation]:
        """Rename a conversation. Returns None if the user owns no such conversation."""
        async with self._transaction("rename conversation") as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.id == conversation_id)
                .where(Conversation.user_id == user_id)
            )
            conversation = result.scalar_one_or_none()
            if conversation is None:
                return None

            conversation.title = title
            await session.flush()
        return conversation
