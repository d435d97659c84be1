"""
Tests for the SQLAlchemy chat store.
Uses a temp SQLite database for each test.
"""
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine

from chatrelay.core.errors import ConversationNotFoundError, PersistenceError
from chatrelay.db.database import build_session_factory, init_db
from chatrelay.models.message import Message, MessageRole
from chatrelay.services.chat_store import ChatStore


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return ChatStore(build_session_factory(engine))


async def count_messages(engine) -> int:
    async with build_session_factory(engine)() as session:
        return await session.scalar(select(func.count()).select_from(Message))


@pytest.mark.asyncio
async def test_insert_conversation_generates_id(store):
    conversation = await store.insert_conversation(1, "Hi")
    assert conversation.id
    assert conversation.title == "Hi"
    assert conversation.created_at is not None

    loaded = await store.get_conversation(conversation.id, 1)
    assert loaded.id == conversation.id


@pytest.mark.asyncio
async def test_conversation_ids_are_unique(store):
    first = await store.insert_conversation(1, "a")
    second = await store.insert_conversation(1, "b")
    assert first.id != second.id


@pytest.mark.asyncio
async def test_get_conversation_is_scoped_to_owner(store):
    conversation = await store.insert_conversation(1, "Mine")
    assert await store.get_conversation(conversation.id, 2) is None


@pytest.mark.asyncio
async def test_messages_listed_in_creation_order(store):
    conversation = await store.insert_conversation(1, "Hi")
    await store.insert_message(conversation.id, MessageRole.USER, "Hi")
    await store.insert_message(conversation.id, MessageRole.ASSISTANT, "Hello!")
    await store.insert_message(conversation.id, "user", "Bye")

    messages = await store.list_messages(conversation.id)
    assert [(m.role, m.content) for m in messages] == [
        (MessageRole.USER, "Hi"),
        (MessageRole.ASSISTANT, "Hello!"),
        (MessageRole.USER, "Bye"),
    ]


@pytest.mark.asyncio
async def test_empty_assistant_reply_is_stored(store):
    conversation = await store.insert_conversation(1, "Hi")
    message = await store.insert_message(conversation.id, MessageRole.ASSISTANT, "")
    assert message.content == ""


@pytest.mark.asyncio
async def test_message_for_unknown_conversation(store, engine):
    with pytest.raises(ConversationNotFoundError):
        await store.insert_message("does-not-exist", MessageRole.USER, "Hi")
    assert await count_messages(engine) == 0


@pytest.mark.asyncio
async def test_invalid_role_rejected(store):
    conversation = await store.insert_conversation(1, "Hi")
    with pytest.raises(ValueError):
        await store.insert_message(conversation.id, "system", "nope")


@pytest.mark.asyncio
async def test_list_conversations_by_last_update(store):
    older = await store.insert_conversation(1, "older")
    newer = await store.insert_conversation(1, "newer")
    await store.insert_conversation(2, "other user")

    assert [c.id for c in await store.list_conversations(1)] == [newer.id, older.id]

    await store.insert_message(older.id, MessageRole.USER, "bump")
    assert [c.id for c in await store.list_conversations(1)] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_rename(store):
    conversation = await store.insert_conversation(1, "Old")
    renamed = await store.update_conversation_title(conversation.id, 1, "New")
    assert renamed.title == "New"
    assert (await store.get_conversation(conversation.id, 1)).title == "New"


@pytest.mark.asyncio
async def test_rename_other_users_conversation(store):
    conversation = await store.insert_conversation(1, "Old")
    assert await store.update_conversation_title(conversation.id, 2, "Hijack") is None
    assert (await store.get_conversation(conversation.id, 1)).title == "Old"


@pytest.mark.asyncio
async def test_delete_cascades_to_messages(store, engine):
    conversation = await store.insert_conversation(1, "Hi")
    await store.insert_message(conversation.id, MessageRole.USER, "Hi")
    await store.insert_message(conversation.id, MessageRole.ASSISTANT, "Hello!")

    assert await store.delete_conversation(conversation.id, 2) is False
    assert await store.delete_conversation(conversation.id, 1) is True
    assert await store.get_conversation(conversation.id, 1) is None
    assert await count_messages(engine) == 0


@pytest.mark.asyncio
async def test_database_failure_becomes_persistence_error(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = ChatStore(build_session_factory(engine))
    try:
        with pytest.raises(PersistenceError):
            await store.insert_conversation(1, "no tables yet")
    finally:
        await engine.dispose()
