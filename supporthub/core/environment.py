from typing import List, Optional
from pydantic_settings import BaseSettings


class EnvironmentSettings(BaseSettings):
    APP_NAME: str = "SupportHub Chat"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # MongoDB
    DATABASE_URI: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "supporthub"
    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Auth
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 60 * 60 * 8
    # First admin, created at startup when no agent has this e-mail
    BOOTSTRAP_ADMIN_EMAIL: Optional[str] = None
    BOOTSTRAP_ADMIN_PASSWORD: Optional[str] = None

    # Chat defaults (overridable at runtime through ChatConfig)
    COMPANY_NAME: str = "Support"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]

    # seconds for outgoing requests
    REQUEST_TIMEOUT: float = 10.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "allow",
    }


def get_environment() -> EnvironmentSettings:
    return EnvironmentSettings()
