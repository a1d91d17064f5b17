import logging
from typing import Callable, Dict, List, Optional

from supporthub.domain.message.message import ChatMessage
from supporthub.domain.session.chat_session import ChatSession, SessionStatus
from supporthub.client.realtime import call_handler

logger = logging.getLogger(__name__)

# Status only ever moves forward; a stale poll must not reopen a session
STATUS_RANK = {
    SessionStatus.WAITING.value: 0,
    SessionStatus.ACTIVE.value: 1,
    SessionStatus.ENDED.value: 2,
}


class Transcript:
    """Confirmed messages in server order plus optimistic ones awaiting an answer."""

    def __init__(self):
        self._confirmed: Dict[str, ChatMessage] = {}
        self._pending: Dict[str, ChatMessage] = {}

    @property
    def messages(self) -> List[ChatMessage]:
        confirmed = sorted(self._confirmed.values(), key=ChatMessage.sort_key)
        return confirmed + list(self._pending.values())

    @property
    def pending(self) -> List[ChatMessage]:
        return list(self._pending.values())

    def __len__(self) -> int:
        return len(self._confirmed) + len(self._pending)

    def add_pending(self, message: ChatMessage) -> None:
        self._pending[message.client_message_id] = message

    def rollback(self, client_message_id: str) -> Optional[ChatMessage]:
        return self._pending.pop(client_message_id, None)

    def merge(self, incoming: List[ChatMessage]) -> List[ChatMessage]:
        """Add server messages; returns the ones this transcript had never shown."""
        fresh = []
        for message in incoming:
            if message.id in self._confirmed:
                continue
            shown = message.client_message_id and self._pending.pop(message.client_message_id, None)
            self._confirmed[message.id] = message
            if not shown:
                fresh.append(message)
        return fresh


class SessionHandle:
    """Client-side view of one chat session."""

    def __init__(self,
                 session: ChatSession,
                 on_message: Optional[Callable] = None,
                 on_status_change: Optional[Callable] = None):
        self.session = session
        self.transcript = Transcript()
        self.on_message = on_message
        self.on_status_change = on_status_change

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def status(self) -> str:
        return self.session.status

    @property
    def is_ended(self) -> bool:
        return self.session.is_ended

    @property
    def messages(self) -> List[ChatMessage]:
        return self.transcript.messages

    async def apply_session(self, session: ChatSession) -> None:
        previous = self.session.status
        if STATUS_RANK[session.status] < STATUS_RANK[previous]:
            logger.debug("Ignoring stale status %s for session %s (now %s)", session.status, self.id, previous)
            return
        self.session = session
        if session.status != previous:
            await call_handler(self.on_status_change, previous, session.status)

    async def apply_messages(self, messages: List[ChatMessage]) -> List[ChatMessage]:
        fresh = self.transcript.merge(messages)
        for message in fresh:
            await call_handler(self.on_message, message)
        return fresh

    async def apply_payload(self, payload: dict) -> None:
        """Apply a ``session + messages`` body as returned by the session endpoints."""
        data = dict(payload)
        messages = [ChatMessage.model_validate(m) for m in data.pop("messages", [])]
        await self.apply_session(ChatSession.model_validate(data))
        await self.apply_messages(messages)

    async def apply_event(self, event: dict) -> None:
        """Apply a pushed ``{type, data}`` event."""
        kind = event.get("type")
        data = event.get("data") or {}
        if kind == "snapshot":
            await self.apply_payload(data)
        elif kind == "message":
            await self.apply_messages([ChatMessage.model_validate(data)])
        elif kind in ("status", "session"):
            await self.apply_session(ChatSession.model_validate(data))
