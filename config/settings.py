"""
Configuration settings for the bulk issue operations service.
All values can be overridden from environment variables or a .env file.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Board Bulk Operations"
    debug: bool = False
    environment: str = "production"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Issues API (batch-mutation endpoint)
    issues_api_base_url: str = "http://localhost:3000"
    issues_api_timeout_seconds: float = 30.0

    # Bulk operation tuning
    bulk_batch_size: int = Field(default=25, ge=1)
    # Size batches per operation kind instead of using bulk_batch_size
    bulk_adaptive_batch_size: bool = False
    bulk_large_operation_threshold: int = Field(default=20, ge=0)
    bulk_max_selection: int = Field(default=100, ge=1)
    bulk_inter_batch_delay_seconds: float = Field(default=0.1, ge=0)
    bulk_completed_reset_seconds: Optional[float] = 3.0
    bulk_history_max_entries: Optional[int] = 50

    # Allowed values for status/priority operations
    valid_statuses: List[str] = Field(
        default_factory=lambda: ["todo", "in_progress", "code_review", "done"]
    )
    valid_priorities: List[str] = Field(
        default_factory=lambda: ["low", "medium", "high", "urgent"]
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
