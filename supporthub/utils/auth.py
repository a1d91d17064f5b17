import logging
from typing import List, Optional

from fastapi import Depends, HTTPException, Request, WebSocket, status

from supporthub.core.dependencies import get_security
from supporthub.utils.security import Security

logger = logging.getLogger(__name__)


def extract_token(authorization: Optional[str], query_token: Optional[str]) -> Optional[str]:
    """Bearer header first, then ``?token=`` (browsers cannot set WS headers)."""
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
        return authorization
    return query_token or None


class PermissionChecker:
    def __init__(self, allowed_permissions: List[str]):
        self.allowed_permissions = allowed_permissions

    async def __call__(self,
                       request: Request,
                       security: Security = Depends(get_security)) -> dict:
        token = extract_token(request.headers.get("authorization"), request.query_params.get("token"))
        if not token:
            logger.warning("Missing authentication token for %s", request.url.path)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return await security.verify_permission(token, self.allowed_permissions)


async def authenticate_websocket(websocket: WebSocket,
                                 security: Security,
                                 allowed_permissions: List[str]) -> Optional[dict]:
    """Returns the token payload, or closes the socket with 1008 and returns None."""
    token = extract_token(websocket.headers.get("authorization"), websocket.query_params.get("token"))
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    try:
        return await security.verify_permission(token, allowed_permissions)
    except HTTPException as e:
        logger.warning("WebSocket auth failure: %s", e.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None


agent_permission = PermissionChecker(allowed_permissions=["agent", "admin"])
admin_permission = PermissionChecker(allowed_permissions=["admin"])
