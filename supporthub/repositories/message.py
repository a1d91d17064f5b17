from typing import List, Optional
from pymongo.errors import DuplicateKeyError

from supporthub.domain.message.message import ChatMessage


class MessageRepository():
    def __init__(self, collection) -> None:
        self._collection = collection

    async def append(self, message: ChatMessage) -> ChatMessage:
        """Store a message; a replayed client_message_id returns the stored copy."""
        if message.client_message_id:
            existing = await self.get_by_client_id(message.session_id, message.client_message_id)
            if existing:
                return existing
        try:
            await self._collection.insert_one(message.to_document())
        except DuplicateKeyError:
            # Lost a race with the same retried send
            existing = await self.get_by_client_id(message.session_id, message.client_message_id)
            if existing is None:
                raise
            return existing
        return message

    async def get_by_client_id(self, session_id: str, client_message_id: str) -> Optional[ChatMessage]:
        doc = await self._collection.find_one({
            "session_id": session_id,
            "client_message_id": client_message_id,
        })
        return ChatMessage.from_document(doc) if doc else None

    async def get_by_session(self, session_id: str, limit: int = 500) -> List[ChatMessage]:
        cursor = self._collection.find({"session_id": session_id})\
            .sort([("timestamp", 1), ("_id", 1)])\
            .limit(limit)
        return [ChatMessage.from_document(doc) async for doc in cursor]

