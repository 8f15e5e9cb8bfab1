"""
Configuration settings for the timebill time tracking core.
All deployment-specific values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Timebill"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="production", env="ENVIRONMENT")

    # Database (PostgreSQL in production, SQLite for local runs and tests)
    database_url: str = Field(default="", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    db_pool_size: int = Field(default=5, env="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, env="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=30, env="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=1800, env="DB_POOL_RECYCLE")

    # Wall-clock timezone used for "now" and for day/week/month/year boundaries
    timezone: str = Field(default="UTC", env="TIMEZONE")

    # Timers running longer than this are reported as idle/stale
    idle_timer_hours: int = Field(default=12, env="IDLE_TIMER_HOURS")

    # Tags
    default_tag_color: str = Field(default="#6366f1", env="DEFAULT_TAG_COLOR")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
