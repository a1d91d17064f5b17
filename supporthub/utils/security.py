import logging
from datetime import datetime, timezone
from typing import Iterable

from fastapi import HTTPException
from jose import jwt, JWTError

from supporthub.core.environment import get_environment
from supporthub.utils.cache import Cache

logger = logging.getLogger(__name__)


def token_cache_key(agent_id: str) -> str:
    return f"auth_token:{agent_id}"


class Security():
    def __init__(self, cache: Cache, env=None):
        self._env = env or get_environment()
        self._cache = cache

    def create_token(self, agent: dict) -> str:
        now = datetime.now(timezone.utc).timestamp()
        payload = {
            "sub": agent["email"],
            "_id": str(agent["_id"]),
            "name": agent["name"],
            "permission": agent["permission"],
            "type": "access",
            "iat": int(now),
            "exp": int(now + self._env.ACCESS_TOKEN_EXPIRE_SECONDS),
        }
        return jwt.encode(payload, self._env.SECRET_KEY, algorithm=self._env.ALGORITHM)

    async def verify_token(self, token: str) -> dict:
        try:
            # Checks signature and exp
            decoded = jwt.decode(token, self._env.SECRET_KEY, algorithms=[self._env.ALGORITHM])
        except JWTError as e:
            logger.warning("Invalid token: %s", e)
            raise HTTPException(401, "Invalid Token")

        user_id = decoded.get("_id")
        if not user_id or not decoded.get("permission"):
            raise HTTPException(401, "Token missing user identifier")

        # Only the token currently whitelisted for the agent is accepted; logout drops it
        active = await self._cache.get(token_cache_key(str(user_id)))
        if active != token:
            raise HTTPException(401, "Session invalid or logged out")

        return decoded

    async def verify_permission(self, token: str, allowed_permissions: Iterable[str]) -> dict:
        decoded = await self.verify_token(token)
        permission = decoded.get("permission")
        # admin is allowed everywhere
        if permission in allowed_permissions or permission == "admin":
            return decoded

        logger.warning("Access denied; user_id=%s, permission=%s", decoded.get("_id"), permission)
        raise HTTPException(403, "Lack of permission")
