"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "taskboard"
    app_env: str = "dev"
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"
    seed_tasks: int = Field(default=3, ge=0)
    generator_enabled: bool = True
    generator_interval_s: float = Field(default=150.0, gt=0)
    # Artificial latency added before every request, for exercising client retries.
    request_delay_s: float = Field(default=0.0, ge=0.0)
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    # Events a WebSocket client may lag behind before it is disconnected.
    ws_queue_size: int = Field(default=1000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="TASKBOARD_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
