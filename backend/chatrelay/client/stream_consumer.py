"""
Consumer of the chat relay response body.

The first line of the body is a JSON preamble naming the conversation; the
rest is reply text. The preamble is recognised only inside the first chunk
read from the transport, matching what the server emits (the preamble is
always flushed as a chunk of its own).
"""
import codecs
import inspect
import json
import logging
from typing import Any, AsyncIterable, Callable, Optional

from chatrelay.client.transcript import ASSISTANT, Transcript


logger = logging.getLogger(__name__)

ERROR_FALLBACK = "Sorry, I encountered an error."


class StreamConsumer:
    """
    Renders one streamed assistant reply into a Transcript.

    Args:
        transcript: State the reply is written into
        on_conversation_created: Called with the new id when the server
            assigned a conversation the transcript did not know yet;
            may be a coroutine function
    """

    def __init__(
        self,
        transcript: Transcript,
        on_conversation_created: Optional[Callable[[str], Any]] = None
    ):
        self.transcript = transcript
        self.on_conversation_created = on_conversation_created
        self.text = ""
        self._first_chunk_pending = True
        self._placeholder = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def begin(self) -> None:
        """Insert the empty assistant message the reply is typed into."""
        self.transcript.append(ASSISTANT, "")
        self._placeholder = True

    async def consume(self, chunks: AsyncIterable[bytes]) -> str:
        """
        Read the body until end of stream.

        Returns:
            The full visible reply text
        """
        if not self._placeholder:
            self.begin()

        async for raw in chunks:
            chunk = self._decoder.decode(raw)
            if self._first_chunk_pending:
                self._first_chunk_pending = False
                chunk = await self._strip_preamble(chunk)
            self.text += chunk
            self.transcript.replace_last(self.text)

        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.text += tail
            self.transcript.replace_last(self.text)
        return self.text

    def fail(self) -> None:
        """Show the fallback error instead of the partial reply."""
        if self._placeholder:
            self.transcript.replace_last(ERROR_FALLBACK)
        else:
            self.transcript.append(ASSISTANT, ERROR_FALLBACK)

    async def _strip_preamble(self, chunk: str) -> str:
        newline = chunk.find("\n")
        if newline == -1:
            return chunk

        try:
            preamble = json.loads(chunk[:newline])
        except ValueError:
            logger.warning("First chunk does not start with a preamble, showing it as text")
            return chunk

        conversation_id = preamble.get("conversationId") if isinstance(preamble, dict) else None
        if conversation_id and not self.transcript.conversation_id:
            self.transcript.conversation_id = conversation_id
            if self.on_conversation_created is not None:
                result = self.on_conversation_created(conversation_id)
                if inspect.isawaitable(result):
                    await result
        return chunk[newline + 1:]
