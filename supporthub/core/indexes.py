from pymongo import ASCENDING, DESCENDING
from motor.motor_asyncio import AsyncIOMotorDatabase


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    sessions = db.get_collection("chat_sessions")
    messages = db.get_collection("chat_messages")
    agents = db.get_collection("agents")

    await sessions.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    await sessions.create_index("assigned_agent_id")

    # Transcript order inside a session
    await messages.create_index([("session_id", ASCENDING), ("timestamp", ASCENDING), ("_id", ASCENDING)])
    # Retried sends carry the same correlation id; only one may land
    await messages.create_index(
        [("session_id", ASCENDING), ("client_message_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"client_message_id": {"$type": "string"}},
    )

    await agents.create_index("email", unique=True)
