"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "test", "production"] = Field(default="development")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Redis (jobs channel)
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0")
    jobs_channel: str = Field(default="jobsChannel")
    worker_connect_timeout_seconds: float = Field(default=10.0)
    # 0 disables the duplicate-delivery guard.
    job_dedup_ttl_seconds: int = Field(default=0)

    # Record store (Salesforce REST)
    salesforce_instance_url: str | None = Field(default=None)
    salesforce_access_token: str | None = Field(default=None)
    salesforce_api_version: str = Field(default="62.0")
    salesforce_timeout_seconds: float = Field(default=30.0)
    query_max_attempts: int = Field(default=3)
    commit_all_or_none: bool = Field(default=True)

    # Callbacks
    callback_timeout_seconds: float = Field(default=10.0)

    # Pricing
    default_region: str = Field(default="NAMER")
    quote_expiration_days: int = Field(default=30)
    quote_name: str = Field(default="New Quote")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
