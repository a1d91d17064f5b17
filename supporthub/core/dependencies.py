from functools import lru_cache

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorCollection

from supporthub.core.db import mongo_manager
from supporthub.core.environment import EnvironmentSettings, get_environment
from supporthub.core.websocket import manager
from supporthub.repositories.agent import AgentRepository
from supporthub.repositories.config import ConfigRepository
from supporthub.repositories.message import MessageRepository
from supporthub.repositories.session import SessionRepository
from supporthub.services.agent_service import AgentService
from supporthub.services.chat_service import ChatService
from supporthub.services.config_service import ConfigService
from supporthub.utils.cache import Cache
from supporthub.utils.security import Security


@lru_cache
def get_settings() -> EnvironmentSettings:
    return get_environment()


def get_db_collection(collection_name: str) -> AsyncIOMotorCollection:
    """Returns a MongoDB collection of the configured database."""
    return mongo_manager.get_collection(collection_name, db_name=get_settings().DATABASE_NAME)


@lru_cache
def get_cache() -> Cache:
    """One Redis connection pool per process."""
    return Cache(get_settings().REDIS_URL)


def get_security(cache: Cache = Depends(get_cache)) -> Security:
    return Security(cache, env=get_settings())


def get_session_repository() -> SessionRepository:
    return SessionRepository(get_db_collection("chat_sessions"))


def get_message_repository() -> MessageRepository:
    return MessageRepository(get_db_collection("chat_messages"))


def get_agent_repository() -> AgentRepository:
    return AgentRepository(get_db_collection("agents"))


def get_config_repository() -> ConfigRepository:
    return ConfigRepository(get_db_collection("configs"))


def get_config_service(
    repo: ConfigRepository = Depends(get_config_repository),
    cache: Cache = Depends(get_cache),
) -> ConfigService:
    return ConfigService(repo, cache, default_company_name=get_settings().COMPANY_NAME)


def get_agent_service(
    repo: AgentRepository = Depends(get_agent_repository),
    cache: Cache = Depends(get_cache),
    security: Security = Depends(get_security),
) -> AgentService:
    return AgentService(repo, cache, security)


def get_chat_service(
    session_repo: SessionRepository = Depends(get_session_repository),
    message_repo: MessageRepository = Depends(get_message_repository),
    config_service: ConfigService = Depends(get_config_service),
) -> ChatService:
    return ChatService(session_repo, message_repo, config_service, notifier=manager)
