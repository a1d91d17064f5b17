from motor.motor_asyncio import AsyncIOMotorCollection
from typing import Optional

from supporthub.domain.config.chat_config import ChatConfig


class ConfigRepository:
    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection

    async def get_config(self) -> Optional[ChatConfig]:
        data = await self._collection.find_one({"type": "chat_config"})
        if not data:
            return None
        data.pop("type", None)
        data["id"] = str(data.pop("_id"))
        return ChatConfig(**data)

    async def save_config(self, config: ChatConfig) -> ChatConfig:
        data = config.model_dump()
        data["type"] = "chat_config"

        await self._collection.replace_one(
            {"type": "chat_config"},
            data,
            upsert=True
        )
        return config
