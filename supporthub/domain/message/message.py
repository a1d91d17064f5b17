from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from enum import Enum
from bson import ObjectId

from supporthub.domain.session.chat_session import utcnow


class MessageSender(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    # ObjectId hex sorts in creation order; sort_key relies on it for equal timestamps
    id: str = Field(default_factory=lambda: str(ObjectId()))
    session_id: str
    content: str
    sender: MessageSender = MessageSender.CUSTOMER
    sender_name: Optional[str] = None
    # null for customer and system messages
    sender_id: Optional[str] = None
    # Correlation id chosen by the sending client; lets it reconcile its
    # optimistic copy and makes a retried send land only once
    client_message_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict:
        data = self.model_dump(exclude={"id"})
        data["_id"] = self.id
        if data.get("client_message_id") is None:
            del data["client_message_id"]
        return data

    @classmethod
    def from_document(cls, doc: dict) -> "ChatMessage":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    def sort_key(self):
        return (self.timestamp, self.id)
