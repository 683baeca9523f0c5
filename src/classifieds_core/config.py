from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "https://bhoomi.dinahub.live"
    REQUEST_TIMEOUT_SECONDS: float = 20.0

    REDIS_URL: str = "redis://localhost:6379/0"
    STORAGE_KEY_PREFIX: str = ""

    LOGIN_PATH: str = "/auth/login"
    REFRESH_PATH: str = "/auth/token/refresh"
    DEFAULT_TOKEN_TYPE: str = "Bearer"

    POLL_INTERVAL_SECONDS: float = 3.0
    HISTORY_PAGE_SIZE: int = 50

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
