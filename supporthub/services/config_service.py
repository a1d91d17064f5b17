import logging

from supporthub.domain.config.chat_config import ChatConfig
from supporthub.repositories.config import ConfigRepository
from supporthub.utils.cache import Cache

logger = logging.getLogger(__name__)

CONFIG_CACHE_KEY = "chat_config"


class ConfigService():
    def __init__(self, repo: ConfigRepository, cache: Cache, default_company_name: str = "Support"):
        self._repo = repo
        self._cache = cache
        self._default_company_name = default_company_name

    async def get_config(self) -> ChatConfig:
        """Avoids a database round trip on every chat start."""
        cached = await self._cache.get(CONFIG_CACHE_KEY)
        if cached:
            return ChatConfig(**cached)

        config = await self._repo.get_config()
        if config is None:
            config = ChatConfig(company_name=self._default_company_name)
        await self._cache.set(CONFIG_CACHE_KEY, config.model_dump())
        return config

    async def save_config(self, config: ChatConfig) -> ChatConfig:
        saved = await self._repo.save_config(config)
        await self._cache.delete(CONFIG_CACHE_KEY)
        logger.info("Chat config updated; enabled=%s", saved.enabled)
        return saved
