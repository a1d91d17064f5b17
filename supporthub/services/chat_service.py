import logging
from datetime import timedelta
from typing import List, Optional

from supporthub.core.websocket import ConnectionManager
from supporthub.domain.message.message import ChatMessage, MessageSender
from supporthub.domain.session.chat_session import ChatSession, SessionStatus
from supporthub.domain.session.errors import (
    ChatUnavailable,
    ChatValidationError,
    SessionConflict,
    SessionNotFound,
)
from supporthub.repositories.message import MessageRepository
from supporthub.repositories.session import SessionRepository
from supporthub.services.config_service import ConfigService

logger = logging.getLogger(__name__)

TAKEN_BY_ANOTHER_AGENT = "Chat session may have been taken by another agent"


def _require(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ChatValidationError(f"{field} is required")
    return cleaned


class ChatService:
    def __init__(self,
                 session_repo: SessionRepository,
                 message_repo: MessageRepository,
                 config_service: ConfigService,
                 notifier: ConnectionManager):
        self.session_repo = session_repo
        self.message_repo = message_repo
        self._config_service = config_service
        self._notifier = notifier

    # ----------------
    # Helpers
    # ----------------
    async def get_session(self, session_id: str) -> ChatSession:
        session = await self.session_repo.get_by_id(session_id)
        if not session:
            raise SessionNotFound(session_id)
        return session

    async def _append_open(self, message: ChatMessage) -> ChatMessage:
        """Store a message unless its session has ended.

        The message is stamped before the status check, so one that wins a race
        with end_session still sorts before the session's ended_at.
        """
        if not await self.session_repo.touch_open(message.session_id):
            raise SessionConflict("Chat session has ended")
        saved = await self.message_repo.append(message)
        await self._publish(saved.session_id, "message", saved.to_response())
        return saved

    async def _publish(self, session_id: str, event_type: str, data: dict) -> None:
        try:
            await self._notifier.publish(session_id, event_type, data)
        except Exception:
            # Subscribers fall back to polling; the write already succeeded
            logger.exception("Failed to push %s event for session %s", event_type, session_id)

    # ----------------
    # Customer side
    # ----------------
    async def start_chat(self,
                         name: str,
                         email: str,
                         message: str,
                         website_url: Optional[str] = None) -> dict:
        """Open a waiting session with the welcome note and the customer's first message."""
        name = _require(name, "Name")
        email = _require(email, "Email")
        message = _require(message, "Initial message")

        config = await self._config_service.get_config()
        if not config.enabled:
            raise ChatUnavailable("Live chat is currently unavailable")

        session = await self.session_repo.create_session(ChatSession(
            customer_name=name,
            customer_email=email,
            website_url=website_url,
        ))

        welcome = ChatMessage(
            session_id=session.id,
            content=config.render_welcome(),
            sender=MessageSender.SYSTEM,
            sender_name=config.system_sender_name,
            timestamp=session.created_at,
        )
        first = ChatMessage(
            session_id=session.id,
            content=message,
            sender=MessageSender.CUSTOMER,
            sender_name=name,
            # strictly after the welcome note
            timestamp=session.created_at + timedelta(milliseconds=1),
        )
        messages = [await self.message_repo.append(welcome), await self.message_repo.append(first)]

        logger.info("Chat session %s started for %s", session.id, email)
        await self._publish(session.id, "session", session.to_response())

        response = session.to_response()
        response["messages"] = [m.to_response() for m in messages]
        return response

    async def send_customer_message(self,
                                    session_id: str,
                                    content: str,
                                    client_message_id: Optional[str] = None) -> ChatMessage:
        content = _require(content, "Message content")
        session = await self.get_session(session_id)
        return await self._append_open(ChatMessage(
            session_id=session.id,
            content=content,
            sender=MessageSender.CUSTOMER,
            sender_name=session.customer_name,
            client_message_id=client_message_id,
        ))

    # ----------------
    # Agent side
    # ----------------
    async def list_active_sessions(self) -> List[ChatSession]:
        return await self.session_repo.get_active_sessions()

    async def get_session_with_messages(self, session_id: str) -> dict:
        session = await self.get_session(session_id)
        messages = await self.message_repo.get_by_session(session_id)
        response = session.to_response()
        response["messages"] = [m.to_response() for m in sorted(messages, key=ChatMessage.sort_key)]
        return response

    async def send_agent_message(self,
                                 session_id: str,
                                 agent: dict,
                                 content: str,
                                 client_message_id: Optional[str] = None) -> ChatMessage:
        content = _require(content, "Message content")
        session = await self.get_session(session_id)
        return await self._append_open(ChatMessage(
            session_id=session.id,
            content=content,
            sender=MessageSender.AGENT,
            sender_name=agent.get("name"),
            sender_id=str(agent.get("_id")),
            client_message_id=client_message_id,
        ))

    async def assign(self, session_id: str, agent: dict) -> ChatSession:
        """waiting -> active, owned by the calling agent."""
        session = await self.get_session(session_id)
        if session.status != SessionStatus.WAITING or session.assigned_agent_id:
            raise SessionConflict(TAKEN_BY_ANOTHER_AGENT)

        agent_id = str(agent.get("_id"))
        updated = await self.session_repo.assign_agent(session.assigned(agent_id, agent.get("name")))
        if not updated:
            logger.warning("Agent %s lost the race for session %s", agent_id, session.id)
            raise SessionConflict(TAKEN_BY_ANOTHER_AGENT)

        logger.info("Chat session %s assigned to agent %s", session.id, agent_id)
        await self._publish(session.id, "status", updated.to_response())
        return updated

    async def end_session(self, session_id: str) -> ChatSession:
        """Close the session for good; ended sessions never reopen."""
        session = await self.get_session(session_id)
        updated = await self.session_repo.end_session(session.ended())
        if not updated:
            raise SessionConflict("Chat session has already ended")

        logger.info("Chat session %s ended (was %s)", session.id, session.status)
        await self._publish(session.id, "status", updated.to_response())
        return updated
