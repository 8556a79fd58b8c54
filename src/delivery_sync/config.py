"""Delivery sync configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_PAGE_SIZE = 50


class DeliverySyncConfig(BaseSettings):
    """Runtime config for the submission, sync and history engines."""

    model_config = SettingsConfigDict(env_prefix="DELIVERY_SYNC_")

    base_url: str = "https://deliveries.devi7.in"
    timeout_seconds: float = Field(default=15.0, gt=0)
    history_page_size: int = Field(default=10, ge=1)
    history_max_page_size: int = Field(
        default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE
    )
    keyword_debounce_seconds: float = Field(default=0.4, ge=0)
    retry_max_attempts: int = Field(default=5, ge=1)
    retry_backoff_seconds: int = Field(default=60, ge=0)
    database_url: str = "sqlite+aiosqlite:///delivery_sync.db"
