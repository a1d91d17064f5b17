import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from supporthub.core.environment import EnvironmentSettings, get_environment

logger = logging.getLogger(__name__)


class MongoManager:
    def __init__(self, env: Optional[EnvironmentSettings] = None):
        self._env = env or get_environment()
        self._client: AsyncIOMotorClient | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self):
        """Open the client and check the server answers."""
        if self._client:
            return
        # tz_aware so stored timestamps compare with utcnow()
        self._client = AsyncIOMotorClient(self._env.DATABASE_URI, tz_aware=True)
        await self._client.admin.command("ping")
        logger.info("MongoDB connected to %s", self._env.DATABASE_NAME)

    async def disconnect(self):
        if self._client:
            self._client.close()
            self._client = None
            logger.info("MongoDB disconnected.")

    def get_db(self, db_name: str = None) -> AsyncIOMotorDatabase:
        if not self._client:
            raise RuntimeError("MongoDB client not initialized. Call connect() first.")
        return self._client[db_name or self._env.DATABASE_NAME]

    def get_collection(self, collection_name: str, db_name: str = None) -> AsyncIOMotorCollection:
        return self.get_db(db_name)[collection_name]


mongo_manager = MongoManager()
