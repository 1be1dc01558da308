"""Configuration management using pydantic-settings."""
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Origin of the application shell the offline cache sits in front of
    app_origin: str = "http://localhost:5000"

    # Network settings
    request_timeout_seconds: float = 30.0

    # Cache storage: "memory" keeps named caches in-process,
    # "sql" persists them through SQLAlchemy
    cache_backend: Literal["memory", "sql"] = "memory"
    cache_database_url: str = "sqlite:///./offline_cache.db"

    # Thread pool size for background cache refreshes
    revalidation_workers: int = 4

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
