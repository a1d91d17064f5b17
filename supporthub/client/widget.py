"""Embeddable customer widget.

``create_chat_widget(config)`` returns an independent, disposable widget
instead of a process-wide singleton; several widgets may coexist.
"""
import logging
import re
from typing import Callable, List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from supporthub.client.customer import MESSAGES_POLL_INTERVAL, CustomerChatClient
from supporthub.client.errors import ValidationError
from supporthub.client.http import DEFAULT_TIMEOUT
from supporthub.client.realtime import call_handler
from supporthub.domain.message.message import ChatMessage

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class WidgetConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    api_base_url: str
    primary_color: str = "#3b82f6"
    position: Literal["bottom-right", "bottom-left"] = "bottom-right"
    company_name: str = "Support"

    @field_validator("api_base_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("apiBaseUrl must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("primary_color")
    @classmethod
    def _hex_color(cls, value: str) -> str:
        if not HEX_COLOR.match(value):
            raise ValueError("primaryColor must be a hex colour such as #3b82f6")
        return value


class ChatWidget:
    def __init__(self,
                 config: WidgetConfig,
                 realtime: bool = True,
                 poll_interval: float = MESSAGES_POLL_INTERVAL,
                 timeout: float = DEFAULT_TIMEOUT,
                 http_client: Optional[httpx.AsyncClient] = None,
                 on_message: Optional[Callable] = None,
                 on_status_change: Optional[Callable] = None):
        self.config = config
        self.realtime = realtime
        self.poll_interval = poll_interval
        self.on_message = on_message
        self.on_status_change = on_status_change
        self.is_open = False
        self.closed = False
        self._client = CustomerChatClient(
            config.api_base_url,
            timeout=timeout,
            http_client=http_client,
            on_message=self._message_received,
            on_status_change=self._status_changed,
        )

    # ----------------
    # State
    # ----------------
    @property
    def title(self) -> str:
        return f"{self.config.company_name} Support"

    @property
    def session_id(self) -> Optional[str]:
        return self._client.session.id if self._client.session else None

    @property
    def status(self) -> Optional[str]:
        return self._client.session.status if self._client.session else None

    @property
    def messages(self) -> List[ChatMessage]:
        return self._client.session.messages if self._client.session else []

    @property
    def polling(self) -> bool:
        return self._client.polling

    @property
    def input_enabled(self) -> bool:
        """The message box is usable only while a live session exists."""
        session = self._client.session
        return not self.closed and session is not None and not session.is_ended

    async def _message_received(self, message: ChatMessage) -> None:
        await call_handler(self.on_message, message)

    async def _status_changed(self, previous: str, current: str) -> None:
        logger.info("Chat session %s moved %s -> %s", self.session_id, previous, current)
        await call_handler(self.on_status_change, previous, current)

    # ----------------
    # Actions
    # ----------------
    def open(self) -> None:
        self.is_open = True

    def minimize(self) -> None:
        self.is_open = False

    async def start_chat(self, name: str, email: str, message: str, website_url: Optional[str] = None):
        if self.closed:
            raise RuntimeError("Widget has been closed")
        handle = await self._client.start_chat(name, email, message, website_url)
        self.is_open = True
        if self.realtime:
            self._client.subscribe(fallback_interval=self.poll_interval)
        else:
            self._client.start_polling(self.poll_interval)
        return handle

    async def send_message(self, content: str) -> ChatMessage:
        if not self.input_enabled:
            raise ValidationError("Chat is not open for messages")
        return await self._client.send_message(self.session_id, content)

    async def refresh(self) -> None:
        if self._client.session is not None:
            await self._client.refresh()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.is_open = False
        await self._client.close()

    async def __aenter__(self) -> "ChatWidget":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


def create_chat_widget(config: Union[WidgetConfig, dict], **options) -> ChatWidget:
    """Build a widget from ``{apiBaseUrl, primaryColor, position, companyName}``."""
    if not isinstance(config, WidgetConfig):
        config = WidgetConfig.model_validate(config)
    return ChatWidget(config, **options)
