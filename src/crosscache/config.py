from __future__ import annotations

from uuid import uuid4

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CROSSCACHE_", env_file=".env", extra="ignore")

    # Process identity used for own-origin suppression
    instance_id: str = Field(default_factory=lambda: str(uuid4())[:8])

    # Store
    default_ttl_ms: int = 5 * 60 * 1000  # 5 minutes
    max_entries: int | None = None

    # Expiry sweep
    cleanup_interval_ms: int = 60 * 1000
    sweep_batch_size: int = 500

    # Cross-process sync
    sync_enabled: bool = True
    channel_name: str = "crosscache:mutation"
    fade_delay_ms: int = 100
    broadcast_backend: str = "memory"
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Statistics refresh for cache clients
    stats_interval_ms: int = 10 * 1000

    # Observability
    enable_metrics: bool = True
    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
