from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from supporthub.core.dependencies import get_agent_service
from supporthub.services.agent_service import AgentService
from supporthub.utils.auth import agent_permission

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login")
async def login(form_data: OAuth2PasswordRequestForm = Depends(),
                agent_service: AgentService = Depends(get_agent_service)):
    """
    Logs an agent in (username is the e-mail) and returns a bearer token.
    """
    agent = await agent_service.authenticate_agent(form_data.username, form_data.password)
    if not agent:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = await agent_service.create_token_for_agent(agent)
    return {"access_token": token, "token_type": "bearer"}


@router.post("/logout")
async def logout(user: dict = Depends(agent_permission),
                 agent_service: AgentService = Depends(get_agent_service)):
    return await agent_service.logout(user["_id"])


@router.get("/me")
async def me(user: dict = Depends(agent_permission)):
    return {
        "id": user["_id"],
        "name": user.get("name"),
        "email": user.get("sub"),
        "permission": user.get("permission"),
    }
