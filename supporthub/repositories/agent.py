from typing import List, Optional
from uuid import uuid4


class AgentRepository():
    def __init__(self, collection) -> None:
        self._collection = collection

    async def save(self, data: dict) -> str:
        data = dict(data)
        data.setdefault("_id", str(uuid4()))
        result = await self._collection.insert_one(data)
        return str(result.inserted_id)

    async def get_by_id(self, _id: str) -> Optional[dict]:
        return await self._collection.find_one({"_id": _id})

    async def find_by_email(self, email: str) -> Optional[dict]:
        return await self._collection.find_one({"email": email.lower()})

    async def update(self, _id: str, data: dict) -> int:
        result = await self._collection.update_one({"_id": _id}, {"$set": data})
        return result.modified_count

    async def list(self, filter: dict = None) -> List[dict]:
        cursor = self._collection.find(filter or {})
        return await cursor.to_list(length=None)
