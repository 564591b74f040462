from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    app_name: str = "Companion Core"
    environment: str = Field(default="development", env="ENVIRONMENT")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_json: bool = Field(default=False, env="LOG_JSON")

    # Storage
    storage_backend: str = Field(default="memory", env="STORAGE_BACKEND")  # memory | postgres
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")
    database_schema: str = Field(default="public", env="DATABASE_SCHEMA")
    database_pool_min_size: int = 2
    database_pool_max_size: int = 10

    # Redis (stats counters)
    stats_backend: str = Field(default="store", env="STATS_BACKEND")  # store | redis
    redis_url: str = Field(default="redis://localhost:6379", env="REDIS_URL")

    # Generative text service
    generation_provider: str = Field(default="openai", env="GENERATION_PROVIDER")  # openai | anthropic
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, env="ANTHROPIC_API_KEY")
    generation_model: str = "gpt-4o-mini"
    premium_generation_model: str = "gpt-4o"
    generation_max_tokens: int = 2000
    generation_temperature: float = 0.7

    # Retry / time bounds for generation
    generation_max_attempts: int = 3
    generation_base_delay: float = 1.0
    generation_max_delay: float = 10.0
    generation_attempt_timeout: float = 60.0
    generation_deadline: float = 180.0

    # Free tier: served artifacts per content type without premium
    free_quotas: Dict[str, int] = Field(default_factory=lambda: {"group_discussion": 1})

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
