from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional

DEFAULT_WELCOME_MESSAGE = (
    "Welcome to {company_name} support! Your message has been received "
    "and an agent will be with you shortly."
)


class ChatConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Whether the public widget may open new chats
    enabled: bool = True
    company_name: str = "Support"
    welcome_message: str = DEFAULT_WELCOME_MESSAGE
    system_sender_name: str = "Support System"

    # Seconds between refreshes for clients without a push channel
    session_poll_interval: float = Field(default=5.0, gt=0)
    messages_poll_interval: float = Field(default=2.0, gt=0)

    id: Optional[str] = Field(default=None, exclude=True)

    def render_welcome(self) -> str:
        return self.welcome_message.replace("{company_name}", self.company_name)
