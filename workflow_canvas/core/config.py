"""
Application Configuration
"""
from functools import lru_cache
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "Workflow Canvas"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = None

    # Canvas defaults (used when a request leaves an option unset)
    DEFAULT_ORIENTATION: Literal["TB", "LR"] = "TB"
    DEFAULT_WRAP_LONG_TEXT: bool = True
    DEFAULT_SHOW_DETAILS: bool = True
    DEFAULT_HIDE_MINI_MAP: bool = True

    # Summaries
    SUMMARY_MAX_LEN: int = 140

    # Camera focus
    FOCUS_MIN_ZOOM: float = 1.09
    FOCUS_DURATION_MS: int = 500


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance
    Using lru_cache ensures settings are loaded once and reused
    """
    return Settings()
