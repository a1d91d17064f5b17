import asyncio

import pytest

from supporthub.domain.config.chat_config import ChatConfig
from supporthub.domain.session.chat_session import SessionStatus
from supporthub.domain.session.errors import (
    ChatUnavailable,
    ChatValidationError,
    InvalidTransition,
    SessionConflict,
    SessionNotFound,
)


async def test_start_chat_creates_waiting_session_with_one_welcome(chat_service, notifier):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    assert started["status"] == "waiting"
    senders = [m["sender"] for m in started["messages"]]
    assert senders == ["system", "customer"]
    assert started["messages"][0]["content"].startswith("Welcome to Acme support!")
    assert started["messages"][1]["content"] == "Help"
    assert started["messages"][1]["senderName"] == "Ada"
    assert notifier.types() == ["session"]


async def test_transcript_order_puts_welcome_first(chat_service):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    transcript = await chat_service.get_session_with_messages(started["id"])

    assert [m["sender"] for m in transcript["messages"]] == ["system", "customer"]


@pytest.mark.parametrize("name,email,message", [
    ("", "ada@x.com", "Help"),
    ("Ada", "  ", "Help"),
    ("Ada", "ada@x.com", None),
])
async def test_start_chat_requires_every_field(chat_service, session_repo, name, email, message):
    with pytest.raises(ChatValidationError):
        await chat_service.start_chat(name, email, message)

    assert session_repo.sessions == {}


async def test_start_chat_refused_when_chat_disabled(chat_service, config_repo):
    config_repo.config = ChatConfig(enabled=False)

    with pytest.raises(ChatUnavailable):
        await chat_service.start_chat("Ada", "ada@x.com", "Help")


async def test_assign_then_agent_message(chat_service, agent):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    session = await chat_service.assign(started["id"], agent)
    assert session.status == SessionStatus.ACTIVE
    assert session.assigned_agent_name == "Grace Hopper"

    reply = await chat_service.send_agent_message(started["id"], agent, "Hi")
    transcript = await chat_service.get_session_with_messages(started["id"])

    agent_messages = [m for m in transcript["messages"] if m["sender"] == "agent"]
    assert len(agent_messages) == 1
    assert agent_messages[0]["senderName"] == "Grace Hopper"
    assert agent_messages[0]["id"] == reply.id


async def test_second_assign_is_a_conflict(chat_service, agent):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")
    await chat_service.assign(started["id"], agent)

    with pytest.raises(SessionConflict, match="taken by another agent"):
        await chat_service.assign(started["id"], {"_id": "agent-2", "name": "Linus"})


async def test_concurrent_assign_has_one_winner(chat_service):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")
    agents = [{"_id": f"agent-{i}", "name": f"Agent {i}"} for i in range(5)]

    results = await asyncio.gather(
        *(chat_service.assign(started["id"], a) for a in agents),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(r, SessionConflict) for r in results if isinstance(r, Exception))


async def test_end_is_irreversible(chat_service, agent, notifier):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")
    await chat_service.assign(started["id"], agent)

    ended = await chat_service.end_session(started["id"])
    assert ended.status == SessionStatus.ENDED
    assert ended.ended_at is not None

    with pytest.raises(InvalidTransition):
        await chat_service.end_session(started["id"])
    with pytest.raises(SessionConflict):
        await chat_service.assign(started["id"], agent)
    assert notifier.types() == ["session", "status", "status"]


async def test_waiting_session_can_be_closed_by_agent(chat_service):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    ended = await chat_service.end_session(started["id"])

    assert ended.status == SessionStatus.ENDED
    assert ended.assigned_agent_id is None


async def test_no_messages_after_end(chat_service, agent):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")
    await chat_service.end_session(started["id"])

    with pytest.raises(SessionConflict):
        await chat_service.send_agent_message(started["id"], agent, "Still there?")
    with pytest.raises(SessionConflict):
        await chat_service.send_customer_message(started["id"], "Hello?")


async def test_retried_customer_message_is_stored_once(chat_service, message_repo):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    first = await chat_service.send_customer_message(started["id"], "Order 42", client_message_id="c-1")
    again = await chat_service.send_customer_message(started["id"], "Order 42", client_message_id="c-1")

    assert first.id == again.id
    assert len([m for m in message_repo.messages if m.client_message_id == "c-1"]) == 1


async def test_unknown_session(chat_service, agent):
    with pytest.raises(SessionNotFound):
        await chat_service.assign("missing", agent)
    with pytest.raises(SessionNotFound):
        await chat_service.send_customer_message("missing", "hi")


async def test_list_active_excludes_ended(chat_service):
    kept = await chat_service.start_chat("Ada", "ada@x.com", "Help")
    gone = await chat_service.start_chat("Bob", "bob@x.com", "Hello")
    await chat_service.end_session(gone["id"])

    sessions = await chat_service.list_active_sessions()

    assert [s.id for s in sessions] == [kept["id"]]


async def test_push_failure_does_not_fail_the_write(chat_service, notifier):
    async def broken(*args):
        raise RuntimeError("socket gone")
    notifier.publish = broken

    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    assert started["status"] == "waiting"


async def test_message_racing_end_is_rejected(chat_service, session_repo, message_repo, agent, monkeypatch):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")
    stale = session_repo.sessions[started["id"]]
    await chat_service.end_session(started["id"])

    # the read happened before the end landed
    async def stale_read(session_id):
        return stale
    monkeypatch.setattr(session_repo, "get_by_id", stale_read)
    stored = len(message_repo.messages)

    with pytest.raises(SessionConflict):
        await chat_service.send_agent_message(started["id"], agent, "Still there?")
    with pytest.raises(SessionConflict):
        await chat_service.send_customer_message(started["id"], "Hello?")
    assert len(message_repo.messages) == stored


async def test_assign_publishes_the_stored_session(chat_service, session_repo, agent, notifier):
    started = await chat_service.start_chat("Ada", "ada@x.com", "Help")

    assigned = await chat_service.assign(started["id"], agent)

    stored = session_repo.sessions[started["id"]]
    assert stored == assigned
    assert stored.assigned_agent_name == "Grace Hopper"
    assert stored.updated_at >= stored.created_at
    assert notifier.events[-1] == (started["id"], "status", stored.to_response())
