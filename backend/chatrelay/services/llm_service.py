"""
LLM Service - streams completions from Gemini, OpenAI or Anthropic through LangChain.

The service is the upstream completion source of the relay: it turns a prompt
into an async sequence of text fragments and reports every provider failure
as an UpstreamError.
"""
import logging
from typing import Any, AsyncIterator, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage

from chatrelay.core.config import settings
from chatrelay.core.errors import UpstreamError
from chatrelay.services.llm_models import LLMModelFactory


logger = logging.getLogger(__name__)


def _extract_text_content(content: Any) -> str:
    """
    Extract text from a chunk's content, which might be a string or a list
    of content blocks.
    """
    if isinstance(content, str):
        return content
    elif isinstance(content, list):
        text_parts = []
        for block in content:
            if isinstance(block, dict) and block.get('type') == 'text':
                text_parts.append(block.get('text', ''))
            elif isinstance(block, str):
                text_parts.append(block)
        return ''.join(text_parts)
    elif content is None:
        return ''
    else:
        return str(content)


def _upstream_status(error: Exception) -> Optional[int]:
    """HTTP status exposed by a provider exception, if it is an error status."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and 400 <= value < 600:
            return value
    return None


def to_upstream_error(error: Exception) -> UpstreamError:
    if isinstance(error, UpstreamError):
        return error
    message = str(error) or error.__class__.__name__
    return UpstreamError(message, status_code=_upstream_status(error))


class CompletionStream:
    """
    Async iterator of non-empty text fragments from one completion.

    `prime()` pulls the first fragment ahead of time so that connection and
    authentication failures surface before the caller commits to a response.
    """

    def __init__(self, chunks: AsyncIterator[Any]):
        self._chunks = chunks
        self._pending: List[str] = []
        self._done = False

    async def prime(self) -> None:
        try:
            self._pending.append(await self._next_text())
        except StopAsyncIteration:
            pass

    def __aiter__(self) -> "CompletionStream":
        return self

    async def __anext__(self) -> str:
        if self._pending:
            return self._pending.pop(0)
        return await self._next_text()

    async def _next_text(self) -> str:
        while not self._done:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._done = True
                break
            except UpstreamError:
                self._done = True
                raise
            except Exception as e:
                self._done = True
                raise to_upstream_error(e) from e

            text = _extract_text_content(getattr(chunk, "content", chunk))
            if text:
                return text
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Stop consuming the provider stream."""
        self._done = True
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()


class LLMService:
    """
    Upstream completion source backed by a LangChain chat model.
    """

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000
    ):
        """
        Args:
            model_name: Name of the model, used to pick the provider
            api_key: Optional API key overriding the configured one
            temperature: Model temperature
            max_tokens: Maximum tokens in response
        """
        self.model_name = model_name
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.model_factory = LLMModelFactory()
        self._llm: Optional[BaseChatModel] = None

    @classmethod
    def from_settings(cls) -> "LLMService":
        return cls(
            model_name=settings.LLM_MODEL,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS
        )

    @property
    def llm(self) -> BaseChatModel:
        # Built on first use: provider clients validate API keys on construction.
        if self._llm is None:
            self._llm = self.model_factory.create_llm(
                model_name=self.model_name,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                api_key=self.api_key
            )
        return self._llm

    async def open_stream(self, prompt: str) -> CompletionStream:
        """
        Start a streamed completion for the prompt.

        Args:
            prompt: The user's message text

        Returns:
            CompletionStream with the first fragment already fetched

        Raises:
            UpstreamError: If the model cannot be created or the stream fails to open
        """
        try:
            chunks = self.llm.astream([HumanMessage(content=prompt)])
        except Exception as e:
            logger.error("Failed to open completion stream for %s: %s", self.model_name, e)
            raise to_upstream_error(e) from e

        stream = CompletionStream(chunks)
        try:
            await stream.prime()
        except UpstreamError as e:
            logger.error("Completion stream for %s failed on open: %s", self.model_name, e)
            await stream.aclose()
            raise
        return stream
