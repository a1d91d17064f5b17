import logging
from typing import Dict, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

AGENTS_CHANNEL = "agents"


def session_channel(session_id: str) -> str:
    return f"session:{session_id}"


class ConnectionManager:
    """WebSocket subscribers grouped by channel.

    Channels: ``agents`` receives every session event, ``session:{id}``
    receives the events of one conversation.
    """

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, channel: str, websocket: WebSocket):
        self.active_connections.setdefault(channel, set()).add(websocket)
        logger.info("WebSocket subscribed to %s (%d open)", channel, len(self.active_connections[channel]))

    def disconnect(self, channel: str, websocket: WebSocket):
        connections = self.active_connections.get(channel)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            del self.active_connections[channel]
            logger.info("Removed empty channel %s", channel)

    async def broadcast(self, channel: str, message: dict):
        closed = []
        for websocket in list(self.active_connections.get(channel, ())):
            try:
                if websocket.client_state == WebSocketState.CONNECTED:
                    await websocket.send_json(message)
                else:
                    closed.append(websocket)
            except Exception as e:
                logger.error("Error broadcasting to %s: %s", channel, e)
                closed.append(websocket)

        for websocket in closed:
            self.disconnect(channel, websocket)

    async def publish(self, session_id: str, event_type: str, data: dict):
        """Send one event to the session's subscribers and to the agents channel."""
        message = {"type": event_type, "sessionId": session_id, "data": data}
        await self.broadcast(session_channel(session_id), message)
        await self.broadcast(AGENTS_CHANNEL, message)


manager = ConnectionManager()
