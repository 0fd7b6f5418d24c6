# backend/config/settings.py
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Application
    APP_NAME: str = "Activity Log Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Durable log store (empty -> in-memory only)
    REDIS_URL: str = ""
    LOG_KEY_PREFIX: str = "activity"
    REDIS_TIMEOUT: float = Field(default=3.0, gt=0)
    STORE_RETRY_BACKOFF: float = Field(default=0.1, ge=0)

    # Relational store, probed by the health check only
    DATABASE_URL: str = ""
    DATABASE_TIMEOUT: float = Field(default=3.0, gt=0)

    # Health probe
    HEALTH_TIMEOUT: float = Field(default=3.0, gt=0)

    # In-memory fallback
    MEMORY_MAX_ENTRIES: int = Field(default=1000, ge=0)

    # Queries
    DEFAULT_QUERY_LIMIT: int = Field(default=100, ge=1)
    MAX_QUERY_LIMIT: int = Field(default=1000, ge=1)
    QUERY_SCAN_BATCH: int = Field(default=200, ge=1)
    QUERY_SCAN_LIMIT: int = Field(default=5000, ge=1)

    # CORS
    ALLOWED_ORIGINS: list = ["*"]

@lru_cache()
def get_settings() -> Settings:
    return Settings()
