"""Agent console endpoints for live chat sessions."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from supporthub.core.dependencies import get_chat_service, get_security
from supporthub.core.websocket import AGENTS_CHANNEL, manager
from supporthub.domain.session.errors import ChatError
from supporthub.routes.errors import http_error
from supporthub.services.chat_service import ChatService
from supporthub.utils.auth import agent_permission, authenticate_websocket
from supporthub.utils.security import Security

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agent/chat-sessions", tags=["Agent chat"])


class AgentMessageRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: Optional[str] = None
    client_message_id: Optional[str] = None


@router.get("", response_model=List[dict])
async def list_sessions(user: dict = Depends(agent_permission),
                        chat_service: ChatService = Depends(get_chat_service)):
    """
    Sessions that have not ended, newest first.
    """
    try:
        sessions = await chat_service.list_active_sessions()
        return [s.to_response() for s in sessions]
    except Exception:
        logger.exception("Error fetching chat sessions")
        raise HTTPException(status_code=500, detail="Failed to fetch chat sessions")


@router.get("/{session_id}")
async def get_session(session_id: str,
                      user: dict = Depends(agent_permission),
                      chat_service: ChatService = Depends(get_chat_service)):
    try:
        return await chat_service.get_session_with_messages(session_id)
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Error fetching chat session %s", session_id)
        raise HTTPException(status_code=500, detail="Failed to fetch chat session")


@router.post("/{session_id}/messages", status_code=201)
async def send_message(session_id: str,
                       request: AgentMessageRequest,
                       user: dict = Depends(agent_permission),
                       chat_service: ChatService = Depends(get_chat_service)):
    try:
        message = await chat_service.send_agent_message(session_id, user, request.content, request.client_message_id)
        return message.to_response()
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Error sending message to session %s", session_id)
        raise HTTPException(status_code=500, detail="Failed to send message")


@router.post("/{session_id}/assign")
async def assign_session(session_id: str,
                         user: dict = Depends(agent_permission),
                         chat_service: ChatService = Depends(get_chat_service)):
    """
    Takes a waiting session. 409 when another agent got there first.
    """
    try:
        session = await chat_service.assign(session_id, user)
        return session.to_response()
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Error assigning chat session %s", session_id)
        raise HTTPException(status_code=500, detail="Failed to assign chat session")


@router.post("/{session_id}/end")
async def end_session(session_id: str,
                      user: dict = Depends(agent_permission),
                      chat_service: ChatService = Depends(get_chat_service)):
    try:
        session = await chat_service.end_session(session_id)
        return {"message": "Chat session ended successfully", "session": session.to_response()}
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Error ending chat session %s", session_id)
        raise HTTPException(status_code=500, detail="Failed to end chat session")


# --------------
# Websocket routes
# --------------

@router.websocket("/ws")
async def session_events(websocket: WebSocket,
                         security: Security = Depends(get_security),
                         chat_service: ChatService = Depends(get_chat_service)):
    """Every session event for the agent console; a session list snapshot first."""
    user = await authenticate_websocket(websocket, security, ["agent", "admin"])
    if user is None:
        return

    await websocket.accept()
    await manager.connect(AGENTS_CHANNEL, websocket)
    try:
        sessions = await chat_service.list_active_sessions()
        await websocket.send_json({"type": "snapshot", "data": [s.to_response() for s in sessions]})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Agent %s disconnected from session events", user.get("_id"))
    finally:
        manager.disconnect(AGENTS_CHANNEL, websocket)
