import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Image Job Proxy"
    ENV: str = Field(default="prod", description="dev | prod")
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    ALLOWED_ORIGIN: str = "*"

    # Freepik / Mystic
    FREEPIK_API_KEY: Optional[str] = None
    FREEPIK_API_URL: str = "https://api.freepik.com/v1/ai/mystic"
    DEFAULT_RESOLUTION: str = "1k"
    DEFAULT_MODEL: str = "realism"
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=30, gt=0)
    PROVIDER_SUBMIT_RETRIES: int = Field(default=2, ge=0)

    # Jobs
    POLL_INTERVAL_SECONDS: float = Field(default=15, gt=0)
    MAX_POLL_ATTEMPTS: int = Field(default=20, gt=0)
    JOB_TTL_SECONDS: float = Field(default=60 * 60, gt=0)  # 1 час
    REAPER_INTERVAL_SECONDS: float = Field(default=10 * 60, gt=0)

    model_config = SettingsConfigDict(
        env_file=None if os.getenv("DISABLE_DOTENV") == "1" else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
