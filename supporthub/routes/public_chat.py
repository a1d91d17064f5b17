"""Public endpoints used by the customer chat widget."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from supporthub.core.dependencies import get_chat_service, get_config_service
from supporthub.core.websocket import manager, session_channel
from supporthub.domain.session.errors import ChatError
from supporthub.routes.errors import http_error
from supporthub.services.chat_service import ChatService
from supporthub.services.config_service import ConfigService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/public", tags=["Public chat"])


# --- Schemas ---
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartChatRequest(_CamelModel):
    # Presence is checked by the service so a blank field is a 400, not a 422
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
    website_url: Optional[str] = None


class CustomerMessageRequest(_CamelModel):
    session_id: Optional[str] = None
    content: Optional[str] = None
    client_message_id: Optional[str] = None


class SessionMessageRequest(_CamelModel):
    content: Optional[str] = None
    client_message_id: Optional[str] = None


@router.post("/chat/start", status_code=status.HTTP_201_CREATED)
async def start_chat(request: StartChatRequest,
                     chat_service: ChatService = Depends(get_chat_service)):
    """
    Opens a waiting chat session with the customer's first message.
    """
    try:
        return await chat_service.start_chat(request.name, request.email, request.message, request.website_url)
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Start chat error")
        raise HTTPException(status_code=500, detail="Failed to start chat session")


@router.post("/chat/message", status_code=status.HTTP_201_CREATED)
async def send_message(request: CustomerMessageRequest,
                       chat_service: ChatService = Depends(get_chat_service)):
    if not request.session_id or not (request.content or "").strip():
        raise HTTPException(status_code=400, detail="Session ID and content are required")
    try:
        message = await chat_service.send_customer_message(
            request.session_id, request.content, request.client_message_id
        )
        return message.to_response()
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Send chat message error")
        raise HTTPException(status_code=500, detail="Failed to send message")


@router.post("/chat/sessions/{session_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_session_message(session_id: str,
                               request: SessionMessageRequest,
                               chat_service: ChatService = Depends(get_chat_service)):
    try:
        message = await chat_service.send_customer_message(session_id, request.content, request.client_message_id)
        return message.to_response()
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Send message error")
        raise HTTPException(status_code=500, detail="Failed to send message")


@router.get("/chat/session/{session_id}")
async def get_session(session_id: str,
                      chat_service: ChatService = Depends(get_chat_service)):
    """
    Session state and transcript, polled by widgets without a push channel.
    """
    try:
        return await chat_service.get_session_with_messages(session_id)
    except ChatError as e:
        raise http_error(e)
    except Exception:
        logger.exception("Get chat session error")
        raise HTTPException(status_code=500, detail="Failed to get chat session")


@router.get("/settings/chat")
async def get_chat_settings(config_service: ConfigService = Depends(get_config_service)):
    try:
        config = await config_service.get_config()
    except Exception:
        logger.exception("Error fetching chat settings")
        # The widget stays visible when settings cannot be read
        return {"enabled": True}
    return {
        "enabled": config.enabled,
        "companyName": config.company_name,
        "sessionPollInterval": config.session_poll_interval,
        "messagesPollInterval": config.messages_poll_interval,
    }


# --------------
# Websocket routes
# --------------

@router.websocket("/chat/ws/{session_id}")
async def session_events(websocket: WebSocket,
                         session_id: str,
                         chat_service: ChatService = Depends(get_chat_service)):
    """Push channel for one conversation: a snapshot first, then live events."""
    try:
        await chat_service.get_session(session_id)
    except ChatError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    channel = session_channel(session_id)
    # subscribed before the snapshot read so no event falls in between
    await manager.connect(channel, websocket)
    try:
        snapshot = await chat_service.get_session_with_messages(session_id)
        await websocket.send_json({"type": "snapshot", "sessionId": session_id, "data": snapshot})
        while True:
            # Clients only send keepalives
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(channel, websocket)
