from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    # Empty string disables the cache layer entirely.
    REDIS_URL: str = "redis://localhost:6379/0"

    WEBHOOK_URL: str
    AUTH_KEY: str
    AUTH_HEADER: str = "x-ins-auth-key"
    WEBHOOK_TIMEOUT_S: float = 10.0

    SCHEDULER_INTERVAL_SECONDS: float = 120.0
    SCHEDULER_BATCH_SIZE: int = 2
    SCHEDULER_AUTOSTART: bool = True

    MESSAGE_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    SENT_MESSAGES_CACHE_TTL_SECONDS: int = 10 * 60

    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
