import json
from typing import Dict, List, Optional

import pytest

from supporthub.core.environment import EnvironmentSettings
from supporthub.domain.config.chat_config import ChatConfig
from supporthub.domain.message.message import ChatMessage
from supporthub.domain.session.chat_session import ChatSession, SessionStatus, utcnow
from supporthub.services.chat_service import ChatService
from supporthub.services.config_service import ConfigService


class FakeCache:
    """Dict-backed stand-in for the Redis cache, JSON round-trip included."""

    def __init__(self):
        self.store: Dict[str, str] = {}

    async def get(self, key):
        raw = self.store.get(key)
        return json.loads(raw) if raw else None

    async def set(self, key, value, ttl=None):
        self.store[key] = json.dumps(value)

    async def delete(self, key):
        self.store.pop(key, None)

    async def close(self):
        pass


class InMemorySessionRepository:
    def __init__(self):
        self.sessions: Dict[str, ChatSession] = {}

    async def get_by_id(self, session_id):
        return self.sessions.get(session_id)

    async def get_active_sessions(self, limit=300):
        active = [s for s in self.sessions.values() if s.status != SessionStatus.ENDED]
        return sorted(active, key=lambda s: s.created_at, reverse=True)[:limit]

    async def create_session(self, session):
        self.sessions[session.id] = session
        return session

    async def assign_agent(self, assigned):
        session = self.sessions.get(assigned.id)
        if not session or session.status != SessionStatus.WAITING or session.assigned_agent_id:
            return None
        self.sessions[assigned.id] = assigned
        return assigned

    async def end_session(self, ended):
        session = self.sessions.get(ended.id)
        if not session or session.status == SessionStatus.ENDED:
            return None
        self.sessions[ended.id] = ended
        return ended

    async def touch_open(self, session_id):
        session = self.sessions.get(session_id)
        if not session or session.status == SessionStatus.ENDED:
            return False
        self.sessions[session_id] = session.model_copy(update={"updated_at": utcnow()})
        return True


class InMemoryMessageRepository:
    def __init__(self):
        self.messages: List[ChatMessage] = []

    async def append(self, message):
        if message.client_message_id:
            existing = await self.get_by_client_id(message.session_id, message.client_message_id)
            if existing:
                return existing
        self.messages.append(message)
        return message

    async def get_by_client_id(self, session_id, client_message_id):
        return next(
            (m for m in self.messages
             if m.session_id == session_id and m.client_message_id == client_message_id),
            None,
        )

    async def get_by_session(self, session_id, limit=500):
        found = [m for m in self.messages if m.session_id == session_id]
        return sorted(found, key=ChatMessage.sort_key)[:limit]


class InMemoryConfigRepository:
    def __init__(self, config: Optional[ChatConfig] = None):
        self.config = config

    async def get_config(self):
        return self.config

    async def save_config(self, config):
        self.config = config
        return config


class InMemoryAgentRepository:
    def __init__(self):
        self.agents: Dict[str, dict] = {}

    async def save(self, data):
        data = dict(data)
        data.setdefault("_id", f"agent-{len(self.agents) + 1}")
        self.agents[data["_id"]] = data
        return data["_id"]

    async def get_by_id(self, _id):
        return self.agents.get(_id)

    async def find_by_email(self, email):
        return next((a for a in self.agents.values() if a["email"] == email), None)

    async def update(self, _id, data):
        self.agents[_id].update(data)
        return 1

    async def list(self, filter=None):
        return list(self.agents.values())


class RecordingNotifier:
    def __init__(self):
        self.events: List[tuple] = []

    async def publish(self, session_id, event_type, data):
        self.events.append((session_id, event_type, data))

    def types(self):
        return [event_type for _, event_type, _ in self.events]


@pytest.fixture
def env():
    return EnvironmentSettings(
        SECRET_KEY="test-secret",
        ALGORITHM="HS256",
        ACCESS_TOKEN_EXPIRE_SECONDS=3600,
        COMPANY_NAME="Acme",
    )


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def session_repo():
    return InMemorySessionRepository()


@pytest.fixture
def message_repo():
    return InMemoryMessageRepository()


@pytest.fixture
def config_repo():
    return InMemoryConfigRepository()


@pytest.fixture
def agent_repo():
    return InMemoryAgentRepository()


@pytest.fixture
def config_service(config_repo, cache):
    return ConfigService(config_repo, cache, default_company_name="Acme")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def chat_service(session_repo, message_repo, config_service, notifier):
    return ChatService(session_repo, message_repo, config_service, notifier)


@pytest.fixture
def agent():
    return {"_id": "agent-1", "name": "Grace Hopper", "permission": "agent"}
