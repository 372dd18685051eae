"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    pending_session_ttl_seconds: int = 1800
    code_generation_attempts: int = 5
    store_retry_attempts: int = 2
    store_retry_delay_seconds: float = 0.2
    expiry_sweep_interval_seconds: float = 60.0
    realtime_broadcast_enabled: bool = False
    subscriber_queue_size: int = 100
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
