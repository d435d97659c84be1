"""
Shared fixtures: an in-memory chat store, a scripted completion source
and a FastAPI test client wired to both.
"""
import itertools
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from chatrelay.core.errors import ConversationNotFoundError, PersistenceError, UpstreamError
from chatrelay.models.message import MessageRole
from chatrelay.services.llm_service import CompletionStream


class FakeChatStore:
    """
    Dict-backed stand-in for ChatStore.

    Every call is recorded in `events` (shared with the completion source
    so tests can assert ordering). Operations named in `fail_on` raise
    PersistenceError.
    """

    def __init__(self, events: List[tuple]):
        self.events = events
        self.conversations: Dict[str, SimpleNamespace] = {}
        self.messages: List[SimpleNamespace] = []
        self.fail_on: set = set()
        self._conversation_ids = (f"c{i}" for i in itertools.count(1))
        self._message_ids = itertools.count(1)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PersistenceError(f"Failed to {operation}")

    @property
    def writes(self) -> List[tuple]:
        return [e for e in self.events if e[0] in ("insert_conversation", "insert_message")]

    def add_conversation(self, user_id: int, title: str, conversation_id: Optional[str] = None) -> SimpleNamespace:
        now = datetime.now(timezone.utc)
        conversation = SimpleNamespace(
            id=conversation_id or next(self._conversation_ids),
            user_id=user_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        self.conversations[conversation.id] = conversation
        return conversation

    async def insert_conversation(self, user_id, title):
        self.events.append(("insert_conversation", user_id, title))
        self._check("insert_conversation")
        return self.add_conversation(user_id, title)

    async def get_conversation(self, conversation_id, user_id):
        self.events.append(("get_conversation", conversation_id))
        conversation = self.conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            return None
        return conversation

    async def insert_message(self, conversation_id, role, content):
        role = MessageRole(role)
        self.events.append(("insert_message", conversation_id, role.value, content))
        self._check(f"insert_{role.value}_message")
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError("Conversation not found")
        conversation.updated_at = datetime.now(timezone.utc)
        message = SimpleNamespace(
            id=next(self._message_ids),
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message

    async def list_messages(self, conversation_id):
        return [m for m in self.messages if m.conversation_id == conversation_id]

    async def list_conversations(self, user_id):
        owned = [c for c in self.conversations.values() if c.user_id == user_id]
        return sorted(owned, key=lambda c: c.updated_at, reverse=True)

    async def delete_conversation(self, conversation_id, user_id):
        if await self.get_conversation(conversation_id, user_id) is None:
            return False
        del self.conversations[conversation_id]
        self.messages = [m for m in self.messages if m.conversation_id != conversation_id]
        return True

    async def update_conversation_title(self, conversation_id, user_id, title):
        conversation = await self.get_conversation(conversation_id, user_id)
        if conversation is None:
            return None
        conversation.title = title
        conversation.updated_at = datetime.now(timezone.utc)
        return conversation

    def stored(self, conversation_id: str) -> List[tuple]:
        return [(m.role.value, m.content) for m in self.messages if m.conversation_id == conversation_id]


class ScriptedSource:
    """
    Completion source yielding preset fragments.

    `error_after` raises an UpstreamError once that many fragments were
    produced; `open_error` fails the stream before the first fragment.
    """

    def __init__(self, events: List[tuple]):
        self.events = events
        self.fragments: List[str] = ["Hel", "lo!"]
        self.error_after: Optional[int] = None
        self.open_error: Optional[Exception] = None
        self.closed = False

    async def _generate(self):
        try:
            if self.open_error is not None:
                raise self.open_error
            for i, fragment in enumerate(self.fragments):
                if self.error_after is not None and i >= self.error_after:
                    raise UpstreamError("model connection reset")
                yield fragment
            if self.error_after is not None and self.error_after >= len(self.fragments):
                raise UpstreamError("model connection reset")
        finally:
            self.closed = True

    async def open_stream(self, prompt):
        self.events.append(("open_stream", prompt))
        stream = CompletionStream(self._generate())
        await stream.prime()
        return stream


@pytest.fixture
def events():
    return []


@pytest.fixture
def store(events):
    return FakeChatStore(events)


@pytest.fixture
def source(events):
    return ScriptedSource(events)


@pytest.fixture
def user():
    return SimpleNamespace(id=1, username="alice", email="alice@example.com", is_active=True)


@pytest.fixture
def api(store, source, user):
    """
    TestClient with the store, completion source and caller overridden.
    Set `api.state.caller = None` to make requests anonymous.
    """
    from fastapi.testclient import TestClient
    from chatrelay.api import deps
    from chatrelay.main import app

    state = SimpleNamespace(caller=user)

    app.dependency_overrides[deps.get_chat_store] = lambda: store
    app.dependency_overrides[deps.get_completion_source] = lambda: source
    app.dependency_overrides[deps.get_optional_user] = lambda: state.caller

    client = TestClient(app)
    client.state = state
    yield client

    app.dependency_overrides.clear()
