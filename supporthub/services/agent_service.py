import logging
from typing import List, Optional

from fastapi import HTTPException

from supporthub.core.environment import get_environment
from supporthub.domain.agents.agent import Agent
from supporthub.repositories.agent import AgentRepository
from supporthub.utils.cache import Cache
from supporthub.utils.security import Security, token_cache_key

logger = logging.getLogger(__name__)


class AgentService():
    def __init__(self,
                 repository: AgentRepository,
                 cache: Cache,
                 security: Security) -> None:
        self._repository = repository
        self._cache = cache
        self._security = security
        self._env = get_environment()

    # ----------------
    # Helpers
    # ----------------
    async def find_by_email(self, email: str) -> Optional[dict]:
        return await self._repository.find_by_email(email)

    async def find_by_id(self, _id: str) -> Optional[dict]:
        return await self._repository.get_by_id(_id)

    # ----------------
    # CRUD Operations
    # ----------------
    async def create_agent(self, data: dict) -> dict:
        data = dict(data)
        data["email"] = data["email"].strip().lower()

        exists = await self.find_by_email(data["email"])
        if exists:
            raise HTTPException(status_code=409, detail="Agent with this email already exists.")

        try:
            agent = Agent(**data)
            att_dict = agent.to_dict()
            agent._id = await self._repository.save(att_dict)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        logger.info("Agent %s created with permission %s", agent.email, agent.permission.value)
        return agent.public_dict()

    async def list_agents(self) -> List[dict]:
        agents = await self._repository.list()
        return [Agent(**a).public_dict() for a in agents]

    # ----------------
    # Auth
    # ----------------
    async def authenticate_agent(self, email: str, password: str) -> Optional[dict]:
        agent_data = await self.find_by_email(email.strip().lower())
        if not agent_data:
            return None

        agent = Agent(**agent_data)
        if not agent.is_active or not agent.password_matches(password):
            return None

        return agent.to_dict()

    async def create_token_for_agent(self, agent: dict) -> str:
        # Reuse the whitelisted token while it is still valid
        cached = await self._cache.get(token_cache_key(str(agent["_id"])))
        if cached:
            try:
                verified = await self._security.verify_token(cached)
                if verified.get("_id") == str(agent["_id"]):
                    return cached
            except HTTPException:
                pass

        access_token = self._security.create_token(agent)
        await self._cache.set(
            token_cache_key(str(agent["_id"])),
            access_token,
            ttl=int(self._env.ACCESS_TOKEN_EXPIRE_SECONDS),
        )
        logger.info("Issued token for agent %s", agent["_id"])
        return access_token

    async def logout(self, agent_id: str) -> dict:
        await self._cache.delete(token_cache_key(str(agent_id)))
        logger.info("Agent %s logged out", agent_id)
        return {"message": "Logout successful"}

    async def ensure_admin(self, email: str, password: str) -> bool:
        """Create the bootstrap admin once; returns True when it was created."""
        if await self.find_by_email(email.strip().lower()):
            return False
        await self.create_agent({"name": "Administrator", "email": email, "password": password, "permission": "admin"})
        return True
