from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from supporthub.domain.session.errors import InvalidTransition


def utcnow() -> datetime:
    # Mongo keeps millisecond precision; match it so stored and in-memory values agree
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class SessionStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"


# ended is terminal; nothing ever leads back to waiting
ALLOWED_TRANSITIONS = {
    SessionStatus.WAITING: {SessionStatus.ACTIVE, SessionStatus.ENDED},
    SessionStatus.ACTIVE: {SessionStatus.ENDED},
    SessionStatus.ENDED: set(),
}


class ChatSession(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    customer_name: str
    customer_email: str
    status: SessionStatus = SessionStatus.WAITING
    assigned_agent_id: Optional[str] = None
    assigned_agent_name: Optional[str] = None
    website_url: Optional[str] = None
    is_active: bool = True
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def can_transition(self, target: SessionStatus) -> bool:
        return SessionStatus(target) in ALLOWED_TRANSITIONS[SessionStatus(self.status)]

    def ensure_transition(self, target: SessionStatus) -> None:
        if not self.can_transition(target):
            raise InvalidTransition(SessionStatus(self.status).value, SessionStatus(target).value)

    @property
    def is_ended(self) -> bool:
        return self.status == SessionStatus.ENDED

    def assigned(self, agent_id: str, agent_name: str) -> "ChatSession":
        """Return a copy of the session taken by the given agent."""
        self.ensure_transition(SessionStatus.ACTIVE)
        now = utcnow()
        return self.model_copy(update={
            "status": SessionStatus.ACTIVE.value,
            "assigned_agent_id": agent_id,
            "assigned_agent_name": agent_name,
            "updated_at": now,
        })

    def ended(self) -> "ChatSession":
        self.ensure_transition(SessionStatus.ENDED)
        now = utcnow()
        return self.model_copy(update={
            "status": SessionStatus.ENDED.value,
            "is_active": False,
            "ended_at": now,
            "updated_at": now,
        })

    # Mongo stores snake_case fields with the session id as _id
    def to_document(self) -> dict:
        data = self.model_dump(exclude={"id"})
        data["_id"] = self.id
        return data

    @classmethod
    def from_document(cls, doc: dict) -> "ChatSession":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
