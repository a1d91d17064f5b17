import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from supporthub.core.db import mongo_manager
from supporthub.core.dependencies import (
    get_agent_repository,
    get_cache,
    get_security,
    get_settings,
)
from supporthub.core.indexes import ensure_indexes
from supporthub.routes import admin, agent_chat, auth, public_chat
from supporthub.services.agent_service import AgentService

load_dotenv()
env = get_settings()

logging.basicConfig(
    level=env.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await mongo_manager.connect()
    await ensure_indexes(mongo_manager.get_db())
    if not await get_cache().ensure():
        logger.warning("Redis unreachable at startup; agent logins will fail until it is back")

    if env.BOOTSTRAP_ADMIN_EMAIL and env.BOOTSTRAP_ADMIN_PASSWORD:
        cache = get_cache()
        service = AgentService(get_agent_repository(), cache, get_security(cache))
        if await service.ensure_admin(env.BOOTSTRAP_ADMIN_EMAIL, env.BOOTSTRAP_ADMIN_PASSWORD):
            logger.info("Bootstrap admin %s created", env.BOOTSTRAP_ADMIN_EMAIL)

    yield

    await get_cache().close()
    await mongo_manager.disconnect()


def create_app(with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(title=env.APP_NAME, lifespan=lifespan if with_lifespan else None)
    app.add_middleware(
        CORSMiddleware,
        # the widget is embedded on third-party sites
        allow_origins=env.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(public_chat.router)
    app.include_router(agent_chat.router)
    app.include_router(auth.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("supporthub.main:app", host=env.HOST, port=env.PORT)
