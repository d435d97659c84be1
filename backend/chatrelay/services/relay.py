"""
Chat relay - forwards a streamed completion to the caller while persisting
both sides of the turn.

One request walks through:
    AUTH -> BOOTSTRAP_CONVERSATION -> PERSIST_USER_MSG -> STREAM_OPEN
         -> STREAMING -> STREAM_DONE -> PERSIST_ASSISTANT_MSG
         -> STREAM_ERROR (upstream failure or client disconnect)

Everything up to STREAM_OPEN happens in `ChatRelay.open()` and fails with a
RelayError before any byte is written. The rest happens while the response
body is being produced by `RelaySession.stream()`.
"""
import asyncio
import json
import logging
from typing import AsyncIterator, List, Optional, Protocol

from chatrelay.core.config import settings
from chatrelay.core.errors import AuthError, ConversationNotFoundError, RelayError
from chatrelay.models.message import MessageRole
from chatrelay.services.chat_store import ChatStore
from chatrelay.services.llm_service import CompletionStream, to_upstream_error


logger = logging.getLogger(__name__)

PREAMBLE_DELIMITER = "\n"


class CompletionSource(Protocol):
    async def open_stream(self, prompt: str) -> CompletionStream: ...


class Caller(Protocol):
    id: int


def derive_title(message: str, max_length: Optional[int] = None) -> str:
    """First characters of the message, with an ellipsis when it was cut."""
    limit = max_length if max_length is not None else settings.TITLE_MAX_LENGTH
    return message[:limit] + ("..." if len(message) > limit else "")


def encode_preamble(conversation_id: str) -> bytes:
    """Control preamble sent as the first chunk: compact JSON plus one newline."""
    payload = json.dumps({"conversationId": conversation_id}, separators=(",", ":"))
    return (payload + PREAMBLE_DELIMITER).encode("utf-8")


class RelaySession:
    """
    In-flight state of one relayed turn: the resolved conversation id,
    the open upstream stream and the fragments forwarded so far.
    """

    def __init__(self, conversation_id: str, upstream: CompletionStream, store: ChatStore):
        self.conversation_id = conversation_id
        self.upstream = upstream
        self.store = store
        self.fragments: List[str] = []

    @property
    def text(self) -> str:
        return "".join(self.fragments)

    async def stream(self) -> AsyncIterator[bytes]:
        """
        Produce the response body.

        The assistant message is stored only when the upstream finished;
        an upstream error is re-raised so the transport aborts the response.
        """
        try:
            yield encode_preamble(self.conversation_id)
            async for fragment in self.upstream:
                self.fragments.append(fragment)
                yield fragment.encode("utf-8")
        except asyncio.CancelledError:
            logger.info("Client disconnected from conversation %s, discarding reply", self.conversation_id)
            raise
        except GeneratorExit:
            logger.info("Response for conversation %s closed early, discarding reply", self.conversation_id)
            raise
        except Exception as e:
            error = to_upstream_error(e)
            logger.error("Stream processing error in conversation %s: %s", self.conversation_id, error.message)
            if error is e:
                raise
            raise error from e
        finally:
            await self.upstream.aclose()

        try:
            await self.store.insert_message(self.conversation_id, MessageRole.ASSISTANT, self.text)
        except RelayError as e:
            # The body is already sent; the caller cannot be told.
            logger.error("Error saving assistant message in conversation %s: %s", self.conversation_id, e.message)


class ChatRelay:
    """
    Orchestrates the pre-stream part of a turn.
    """

    def __init__(self, store: ChatStore, source: CompletionSource):
        self.store = store
        self.source = source

    async def open(
        self,
        user: Optional[Caller],
        message: str,
        conversation_id: Optional[str] = None
    ) -> RelaySession:
        """
        Resolve the conversation, store the user message and open the upstream.

        Args:
            user: The caller resolved from the request credential
            message: The user's message text
            conversation_id: Existing conversation, or None to start one

        Returns:
            RelaySession ready to stream

        Raises:
            AuthError: No caller
            ConversationNotFoundError: conversation_id is unknown to the caller
            PersistenceError: Conversation or message could not be stored
            UpstreamError: The completion stream could not be opened
        """
        if user is None:
            raise AuthError("Unauthorized")

        if conversation_id:
            conversation = await self.store.get_conversation(conversation_id, user.id)
            if conversation is None:
                raise ConversationNotFoundError("Conversation not found")
        else:
            conversation = await self.store.insert_conversation(user.id, derive_title(message))
            conversation_id = conversation.id

        await self.store.insert_message(conversation_id, MessageRole.USER, message)

        upstream = await self.source.open_stream(message)
        return RelaySession(conversation_id, upstream, self.store)
