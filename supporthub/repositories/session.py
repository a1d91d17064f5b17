from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from typing import List, Optional

from supporthub.domain.session.chat_session import ChatSession, SessionStatus, utcnow


class SessionRepository:
    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection

    # ------------------------
    # Query Operations
    # ------------------------
    async def get_by_id(self, session_id: str) -> Optional[ChatSession]:
        doc = await self._collection.find_one({"_id": session_id})
        return ChatSession.from_document(doc) if doc else None

    async def get_active_sessions(self, limit: int = 300) -> List[ChatSession]:
        """Sessions that have not ended yet, newest first."""
        cursor = self._collection.find(
            {"status": {"$in": [SessionStatus.WAITING.value, SessionStatus.ACTIVE.value]}}
        ).sort("created_at", -1).limit(limit)

        return [ChatSession.from_document(doc) async for doc in cursor]

    # ------------------------
    # CRUD Operations
    # ------------------------
    async def create_session(self, session: ChatSession) -> ChatSession:
        await self._collection.insert_one(session.to_document())
        return session

    async def assign_agent(self, assigned: ChatSession) -> Optional[ChatSession]:
        """Persist ``assigned`` only if the stored session is still waiting and unassigned.

        The filter and the update run as one document operation, so of two
        agents racing for the same session only one gets a document back.
        """
        doc = await self._collection.find_one_and_update(
            {
                "_id": assigned.id,
                "status": SessionStatus.WAITING.value,
                "assigned_agent_id": None,
            },
            {
                "$set": {
                    "status": assigned.status,
                    "assigned_agent_id": assigned.assigned_agent_id,
                    "assigned_agent_name": assigned.assigned_agent_name,
                    "updated_at": assigned.updated_at,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return ChatSession.from_document(doc) if doc else None

    async def end_session(self, ended: ChatSession) -> Optional[ChatSession]:
        """Persist ``ended`` unless the stored session already ended."""
        doc = await self._collection.find_one_and_update(
            {"_id": ended.id, "status": {"$ne": SessionStatus.ENDED.value}},
            {
                "$set": {
                    "status": ended.status,
                    "is_active": ended.is_active,
                    "ended_at": ended.ended_at,
                    "updated_at": ended.updated_at,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return ChatSession.from_document(doc) if doc else None

    async def touch_open(self, session_id: str) -> bool:
        """Bump updated_at of a session that has not ended; False once it has."""
        response = await self._collection.update_one(
            {"_id": session_id, "status": {"$ne": SessionStatus.ENDED.value}},
            {"$set": {"updated_at": utcnow()}},
        )
        return response.matched_count > 0
