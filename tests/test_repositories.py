from unittest.mock import AsyncMock, MagicMock

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from supporthub.domain.message.message import ChatMessage
from supporthub.domain.session.chat_session import ChatSession
from supporthub.repositories.message import MessageRepository
from supporthub.repositories.session import SessionRepository


def _waiting():
    return ChatSession(id="s-1", customer_name="Ada", customer_email="ada@x.com")


async def test_assign_only_matches_waiting_unassigned_session():
    collection = MagicMock()
    assigned = _waiting().assigned("agent-1", "Grace Hopper")
    collection.find_one_and_update = AsyncMock(return_value=assigned.to_document())
    repo = SessionRepository(collection)

    session = await repo.assign_agent(assigned)

    filter_, update = collection.find_one_and_update.await_args.args
    assert filter_ == {"_id": "s-1", "status": "waiting", "assigned_agent_id": None}
    assert update["$set"] == {
        "status": "active",
        "assigned_agent_id": "agent-1",
        "assigned_agent_name": "Grace Hopper",
        "updated_at": assigned.updated_at,
    }
    assert collection.find_one_and_update.await_args.kwargs["return_document"] is ReturnDocument.AFTER
    assert session.assigned_agent_name == "Grace Hopper"


async def test_assign_lost_race_returns_none():
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(return_value=None)

    assert await SessionRepository(collection).assign_agent(_waiting().assigned("agent-2", "Linus")) is None


async def test_end_never_matches_ended_session():
    collection = MagicMock()
    ended = _waiting().ended()
    collection.find_one_and_update = AsyncMock(return_value=ended.to_document())

    session = await SessionRepository(collection).end_session(ended)

    filter_, update = collection.find_one_and_update.await_args.args
    assert filter_ == {"_id": "s-1", "status": {"$ne": "ended"}}
    assert update["$set"]["is_active"] is False
    assert update["$set"]["ended_at"] == ended.ended_at
    assert session.is_ended


async def test_touch_open_skips_ended_session():
    collection = MagicMock()
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=0))

    assert await SessionRepository(collection).touch_open("s-1") is False
    filter_, _ = collection.update_one.await_args.args
    assert filter_ == {"_id": "s-1", "status": {"$ne": "ended"}}


async def test_append_returns_stored_copy_after_duplicate_key():
    stored = ChatMessage(session_id="s-1", content="Hi", sender="customer", client_message_id="c-1")
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=[None, stored.to_document()])
    collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("dup"))
    retry = ChatMessage(session_id="s-1", content="Hi", sender="customer", client_message_id="c-1")

    result = await MessageRepository(collection).append(retry)

    assert result.id == stored.id


async def test_append_without_correlation_id_skips_lookup():
    collection = MagicMock()
    collection.find_one = AsyncMock()
    collection.insert_one = AsyncMock()
    message = ChatMessage(session_id="s-1", content="Hi", sender="agent")

    assert await MessageRepository(collection).append(message) is message
    collection.find_one.assert_not_awaited()
    collection.insert_one.assert_awaited_once_with(message.to_document())
