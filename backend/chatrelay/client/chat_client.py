"""
Async HTTP client for the chat backend.

Keeps a Transcript in sync with the server: sends turns through the
streaming relay and wraps the conversation endpoints.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from chatrelay.client.stream_consumer import StreamConsumer
from chatrelay.client.transcript import USER, Transcript


logger = logging.getLogger(__name__)


class ChatRequestError(Exception):
    """The server answered a chat request with an error status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class ChatClient:
    """
    Client for one signed-in user.

    Args:
        base_url: Root URL of the backend
        token: Bearer token from `login`, if already known
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None
    ):
        self.transcript = Transcript()
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        if token:
            self.set_token(token)

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def set_token(self, token: str) -> None:
        self._http.headers["Authorization"] = f"Bearer {token}"

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        response = await self._http.post("/api/auth/login", json={"username": username, "password": password})
        response.raise_for_status()
        data = response.json()
        self.set_token(data["access_token"])
        return data["user"]

    async def send_message(self, text: str) -> str:
        """
        Send one chat turn and stream the reply into the transcript.

        Transport and server errors are not raised: the reply is replaced
        by the fallback error message instead.

        Returns:
            The final content of the assistant message
        """
        text = text.strip()
        if not text:
            raise ValueError("message must not be empty")

        self.transcript.append(USER, text)
        consumer = StreamConsumer(self.transcript, on_conversation_created=self._conversation_created)
        payload = {"message": text, "conversationId": self.transcript.conversation_id}

        try:
            async with self._http.stream("POST", "/api/chat", json=payload) as response:
                if response.is_error:
                    body = await response.aread()
                    raise ChatRequestError(response.status_code, body.decode("utf-8", errors="replace"))
                consumer.begin()
                await consumer.consume(response.aiter_bytes())
        except (httpx.HTTPError, ChatRequestError) as e:
            logger.error("Chat request failed: %s", e)
            consumer.fail()

        return self.transcript.last.content

    async def _conversation_created(self, conversation_id: str) -> None:
        logger.info("Server started conversation %s", conversation_id)
        try:
            await self.refresh_conversations()
        except (httpx.HTTPError, ValueError) as e:
            # The reply is still streaming; a stale list is shown instead.
            logger.warning("Could not refresh conversations: %s", e)

    async def refresh_conversations(self) -> List[Dict[str, Any]]:
        response = await self._http.get("/api/conversations")
        response.raise_for_status()
        self.transcript.conversations = response.json()
        return self.transcript.conversations

    async def load_conversation(self, conversation_id: str) -> None:
        response = await self._http.get(f"/api/conversations/{conversation_id}/messages")
        response.raise_for_status()
        self.transcript.load(conversation_id, response.json())

    def start_new_chat(self) -> None:
        self.transcript.reset()

    async def rename_conversation(self, conversation_id: str, title: str) -> Dict[str, Any]:
        response = await self._http.patch(f"/api/conversations/{conversation_id}", json={"title": title})
        response.raise_for_status()
        await self.refresh_conversations()
        return response.json()

    async def delete_conversation(self, conversation_id: str) -> None:
        response = await self._http.delete(f"/api/conversations/{conversation_id}")
        response.raise_for_status()
        if self.transcript.conversation_id == conversation_id:
            self.start_new_chat()
        await self.refresh_conversations()
