"""Agent console client: list, take, answer and close chat sessions."""
import logging
from typing import Callable, Dict, List, Optional
from uuid import uuid4

import httpx

from supporthub.client.http import DEFAULT_TIMEOUT, ApiClient
from supporthub.client.realtime import Poller, PushSubscription, call_handler
from supporthub.client.session import SessionHandle
from supporthub.domain.message.message import ChatMessage
from supporthub.domain.session.chat_session import ChatSession

logger = logging.getLogger(__name__)

SESSIONS_POLL_INTERVAL = 5.0
MESSAGES_POLL_INTERVAL = 2.0

BASE_PATH = "/api/agent/chat-sessions"


class AgentChatConsole:
    def __init__(self,
                 base_url: str,
                 token: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 http_client: Optional[httpx.AsyncClient] = None):
        self._api = ApiClient(base_url, timeout=timeout, http_client=http_client)
        self.token = None
        if token:
            self.set_token(token)
        self._handles: Dict[str, SessionHandle] = {}
        # callbacks registered before the first fetch of a session
        self._callbacks: Dict[str, tuple] = {}
        self._pollers: List[Poller] = []
        self._push: Optional[PushSubscription] = None

    def set_token(self, token: str) -> None:
        self.token = token
        self._api.headers["Authorization"] = f"Bearer {token}"

    async def login(self, email: str, password: str) -> str:
        payload = await self._api.post("/api/auth/login", data={"username": email, "password": password})
        self.set_token(payload["access_token"])
        return self.token

    async def logout(self) -> None:
        await self._api.post("/api/auth/logout")
        self.token = None
        self._api.headers.pop("Authorization", None)

    # ----------------
    # Sessions
    # ----------------
    async def list_sessions(self) -> List[ChatSession]:
        payload = await self._api.get(BASE_PATH)
        return [ChatSession.model_validate(s) for s in payload]

    def track(self,
              session_id: str,
              on_message: Optional[Callable] = None,
              on_status_change: Optional[Callable] = None) -> Optional[SessionHandle]:
        """Register callbacks for a session; applied on the next fetch of it."""
        handle = self._handles.get(session_id)
        if handle is not None:
            handle.on_message = on_message or handle.on_message
            handle.on_status_change = on_status_change or handle.on_status_change
        else:
            self._callbacks[session_id] = (on_message, on_status_change)
        return handle

    async def get_session(self, session_id: str) -> SessionHandle:
        payload = await self._api.get(f"{BASE_PATH}/{session_id}")
        handle = self._handles.get(session_id)
        if handle is None:
            data = {k: v for k, v in payload.items() if k != "messages"}
            on_message, on_status_change = self._callbacks.pop(session_id, (None, None))
            handle = SessionHandle(ChatSession.model_validate(data), on_message, on_status_change)
            self._handles[session_id] = handle
        await handle.apply_payload(payload)
        return handle

    async def assign(self, session_id: str) -> ChatSession:
        """Take the session; ConflictError when another agent already has it."""
        payload = await self._api.post(f"{BASE_PATH}/{session_id}/assign")
        session = ChatSession.model_validate(payload)
        if session_id in self._handles:
            await self._handles[session_id].apply_session(session)
        return session

    async def end_session(self, session_id: str) -> ChatSession:
        payload = await self._api.post(f"{BASE_PATH}/{session_id}/end")
        session = ChatSession.model_validate(payload["session"])
        if session_id in self._handles:
            await self._handles[session_id].apply_session(session)
        return session

    async def send_message(self, session_id: str, content: str) -> ChatMessage:
        payload = await self._api.post(f"{BASE_PATH}/{session_id}/messages", json={
            "content": content,
            "clientMessageId": uuid4().hex,
        })
        message = ChatMessage.model_validate(payload)
        if session_id in self._handles:
            await self._handles[session_id].apply_messages([message])
        return message

    # ----------------
    # Freshness
    # ----------------
    def watch_sessions(self,
                       on_sessions: Callable[[List[ChatSession]], object],
                       interval: float = SESSIONS_POLL_INTERVAL) -> Poller:
        async def tick():
            await call_handler(on_sessions, await self.list_sessions())

        poller = Poller(tick, interval).start()
        self._pollers.append(poller)
        return poller

    def watch_session(self,
                      session_id: str,
                      on_message: Optional[Callable] = None,
                      on_status_change: Optional[Callable] = None,
                      interval: float = MESSAGES_POLL_INTERVAL) -> Poller:
        self.track(session_id, on_message, on_status_change)
        poller = Poller(lambda: self.get_session(session_id), interval).start()
        self._pollers.append(poller)
        return poller

    def subscribe(self,
                  on_event: Callable[[dict], object],
                  on_closed: Optional[Callable] = None) -> PushSubscription:
        """Pushed events for every session; tracked sessions are updated too.

        ``on_closed(error)`` runs if the connection is lost; callers usually
        switch to watch_sessions() there.
        """
        if not self.token:
            raise ValueError("Log in before subscribing")

        async def dispatch(event: dict):
            handle = self._handles.get(event.get("sessionId"))
            if handle is not None:
                await handle.apply_event(event)
            await call_handler(on_event, event)

        if self._push is None:
            url = self._api.ws_url(f"{BASE_PATH}/ws?token={self.token}")
            self._push = PushSubscription(url, dispatch, on_closed=on_closed)
        return self._push.start()

    async def close(self) -> None:
        for poller in self._pollers:
            await poller.stop()
        self._pollers.clear()
        if self._push is not None:
            await self._push.stop()
            self._push = None
        await self._api.aclose()

    async def __aenter__(self) -> "AgentChatConsole":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
