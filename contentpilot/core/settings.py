"""Application settings and configuration."""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONTENTPILOT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Timezone used for publish_time and calendar-day accounting
    tz: str = Field(default="UTC")

    # Database
    db_url: str = Field(default="sqlite+aiosqlite:///./contentpilot.db")
    db_echo: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    environment: str = Field(default="development")

    # Service configuration
    service_host: str = Field(default="0.0.0.0")
    service_port: Optional[int] = Field(default=None)
    debug: bool = Field(default=False)
    allow_manual_run: bool = Field(default=False)
    scheduler_autostart: bool = Field(default=True)

    # Content extraction
    extractor_timeout_seconds: float = Field(default=10.0)
    extractor_max_bytes: int = Field(default=5 * 1024 * 1024)
    extractor_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; ContentPilot/0.1; +https://contentpilot.local/bot)"
    )

    # AI providers
    provider_timeout_seconds: float = Field(default=60.0)
    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-1.5-flash")
    groq_api_key: str = Field(default="")
    groq_model: str = Field(default="llama-3.3-70b-versatile")
    cohere_api_key: str = Field(default="")
    cohere_model: str = Field(default="command")
    huggingface_api_key: str = Field(default="")
    huggingface_model: str = Field(default="bigscience/bloom")

    # Auto-publish scheduler
    scheduler_poll_seconds: float = Field(default=30.0)
    scheduler_max_attempts: int = Field(default=3)
    scheduler_base_delay_seconds: float = Field(default=60.0)
    auto_publish_seed_file: str = Field(default="config/auto_publish.yaml")

    app_name: str = "ContentPilot"


@lru_cache()
def get_settings() -> Settings:
    """Get settings singleton."""
    return Settings()
