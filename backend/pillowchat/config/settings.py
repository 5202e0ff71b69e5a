"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Pillow AI"
    app_version: str = "1.0.0"
    debug: bool = True

    # Storage
    local_storage_path: str = "./data"
    snapshot_debounce_seconds: float = 1.0

    # OpenRouter API
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_app_title: str = "Pillow AI"
    openrouter_referer: str = "http://localhost:8000"
    openrouter_api_key: Optional[str] = None  # seeds the user API key on first run
    request_timeout: float = 120.0

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/pillowchat.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
