"""Customer side of the live chat: start a session, talk, follow the agent."""
import logging
from typing import Callable, Optional
from uuid import uuid4

import httpx

from supporthub.client.errors import ValidationError
from supporthub.client.http import DEFAULT_TIMEOUT, ApiClient
from supporthub.client.realtime import Poller, PushSubscription, call_handler
from supporthub.client.session import SessionHandle
from supporthub.domain.message.message import ChatMessage, MessageSender
from supporthub.domain.session.chat_session import ChatSession

logger = logging.getLogger(__name__)

MESSAGES_POLL_INTERVAL = 2.0


class CustomerChatClient:
    def __init__(self,
                 base_url: str,
                 timeout: float = DEFAULT_TIMEOUT,
                 http_client: Optional[httpx.AsyncClient] = None,
                 on_message: Optional[Callable] = None,
                 on_status_change: Optional[Callable] = None):
        self._api = ApiClient(base_url, timeout=timeout, http_client=http_client)
        self.on_message = on_message
        self.on_status_change = on_status_change
        self.session: Optional[SessionHandle] = None
        self._poller: Optional[Poller] = None
        self._push: Optional[PushSubscription] = None
        self._closed = False

    def _handle(self, session_id: str) -> SessionHandle:
        if self.session is None or self.session.id != session_id:
            raise ValueError(f"No chat started for session {session_id}")
        return self.session

    async def start_chat(self,
                         name: str,
                         email: str,
                         message: str,
                         website_url: Optional[str] = None) -> SessionHandle:
        """Open a chat; blank fields fail here without reaching the server."""
        fields = {"name": name, "email": email, "message": message}
        missing = [k for k, v in fields.items() if not (v or "").strip()]
        if missing:
            raise ValidationError(f"Required: {', '.join(missing)}")

        body = {k: v.strip() for k, v in fields.items()}
        if website_url:
            body["websiteUrl"] = website_url
        payload = await self._api.post("/api/public/chat/start", json=body)

        messages = payload.pop("messages", [])
        handle = SessionHandle(
            ChatSession.model_validate(payload),
            on_message=self.on_message,
            on_status_change=self.on_status_change,
        )
        await handle.apply_messages([ChatMessage.model_validate(m) for m in messages])
        self.session = handle
        logger.info("Started chat session %s", handle.id)
        return handle

    async def send_message(self, session_id: str, content: str) -> ChatMessage:
        """Show the message at once, then swap in the stored copy or roll it back."""
        handle = self._handle(session_id)
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        if handle.is_ended:
            raise ValidationError("Chat session has ended")

        client_message_id = uuid4().hex
        pending = ChatMessage(
            id=f"pending-{client_message_id}",
            session_id=session_id,
            content=content,
            sender=MessageSender.CUSTOMER,
            sender_name=handle.session.customer_name,
            client_message_id=client_message_id,
        )
        handle.transcript.add_pending(pending)
        await call_handler(handle.on_message, pending)

        try:
            payload = await self._api.post("/api/public/chat/message", json={
                "sessionId": session_id,
                "content": content,
                "clientMessageId": client_message_id,
            })
        except Exception:
            handle.transcript.rollback(client_message_id)
            logger.exception("Failed to send message to session %s", session_id)
            raise

        saved = ChatMessage.model_validate(payload)
        await handle.apply_messages([saved])
        return saved

    async def refresh(self, session_id: Optional[str] = None) -> SessionHandle:
        handle = self._handle(session_id or (self.session and self.session.id))
        payload = await self._api.get(f"/api/public/chat/session/{handle.id}")
        await handle.apply_payload(payload)
        return handle

    def start_polling(self, interval: float = MESSAGES_POLL_INTERVAL) -> Poller:
        if self.session is None:
            raise ValueError("Start a chat before polling")
        if self._poller is None:
            self._poller = Poller(self.refresh, interval)
        return self._poller.start()

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    def subscribe(self, fallback_interval: float = MESSAGES_POLL_INTERVAL) -> PushSubscription:
        """Receive pushed events; polling takes over once the connection is lost."""
        if self.session is None:
            raise ValueError("Start a chat before subscribing")
        if self._push is None:
            url = self._api.ws_url(f"/api/public/chat/ws/{self.session.id}")
            self._push = PushSubscription(
                url,
                self.session.apply_event,
                on_closed=lambda error: self._push_lost(fallback_interval),
            )
        return self._push.start()

    def _push_lost(self, interval: float) -> None:
        if self._closed:
            return
        logger.warning("Push channel for session %s lost, polling every %ss", self.session.id, interval)
        self.start_polling(interval)

    async def close(self) -> None:
        self._closed = True
        if self._push is not None:
            await self._push.stop()
            self._push = None
        if self._poller is not None:
            await self._poller.stop()
            self._poller = None
        await self._api.aclose()

    async def __aenter__(self) -> "CustomerChatClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
