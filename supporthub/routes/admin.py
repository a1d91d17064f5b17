from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel, EmailStr
from typing import List, Literal

from supporthub.core.dependencies import get_agent_service, get_config_service
from supporthub.domain.config.chat_config import ChatConfig
from supporthub.services.agent_service import AgentService
from supporthub.services.config_service import ConfigService
from supporthub.utils.auth import admin_permission

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# --- Schemas ---
class AgentCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    permission: Literal["agent", "admin"] = "agent"


@router.post("/agents", status_code=status.HTTP_201_CREATED)
async def create_agent(agent: AgentCreate = Body(...),
                       user: dict = Depends(admin_permission),
                       agent_service: AgentService = Depends(get_agent_service)):
    return await agent_service.create_agent(agent.model_dump())


@router.get("/agents", response_model=List[dict])
async def list_agents(user: dict = Depends(admin_permission),
                      agent_service: AgentService = Depends(get_agent_service)):
    return await agent_service.list_agents()


@router.get("/settings/chat")
async def get_chat_settings(user: dict = Depends(admin_permission),
                            config_service: ConfigService = Depends(get_config_service)):
    config = await config_service.get_config()
    return config.model_dump(by_alias=True)


@router.put("/settings/chat")
async def update_chat_settings(config: ChatConfig = Body(...),
                               user: dict = Depends(admin_permission),
                               config_service: ConfigService = Depends(get_config_service)):
    saved = await config_service.save_config(config)
    return saved.model_dump(by_alias=True)
