"""
ComplyWatch Application Configuration

Configuration management using pydantic-settings.
All configuration values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional
from functools import lru_cache
import os

from complywatch.utils.constants import APP_NAME, APP_VERSION, SIGNATURE_CACHE_MAX_ENTRIES


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Values can be set via:
    1. Environment variables
    2. .env file (local development)
    3. Default values defined here
    """

    # =========================================================================
    # Application
    # =========================================================================
    app_name: str = APP_NAME
    app_version: str = APP_VERSION
    debug: bool = False

    # =========================================================================
    # Server
    # =========================================================================
    host: str = "0.0.0.0"
    port: int = Field(default=8000, description="Port - overridden by PORT env var")
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # =========================================================================
    # Database
    # =========================================================================
    database_url: str = "sqlite:///./data/complywatch.db"

    # =========================================================================
    # AI Classification (external LLM service)
    # =========================================================================
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic Claude API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    ai_enabled: bool = True
    ai_provider: str = "openai"
    llm_timeout_seconds: int = Field(default=30, description="Per-request LLM timeout")
    llm_max_retries: int = 2

    # =========================================================================
    # Classification
    # =========================================================================
    internal_domains: List[str] = Field(
        default_factory=lambda: ["company.com"],
        description="Domains treated as internal recipients",
    )
    business_hours_start: int = 8
    business_hours_end: int = 18
    signature_cache_ttl_hours: int = 24
    signature_cache_max_entries: int = SIGNATURE_CACHE_MAX_ENTRIES
    category_cache_ttl_seconds: int = 300
    compliance_cache_ttl_seconds: int = 600

    # =========================================================================
    # Policy Execution
    # =========================================================================
    executor_enabled: bool = True
    executor_poll_interval_seconds: float = 5.0
    executor_batch_size: int = 10
    alert_webhook_url: Optional[str] = Field(default=None, description="Optional webhook for alert fan-out")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        platform_port = os.environ.get("PORT")
        if platform_port:
            self.port = int(platform_port)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are cached to avoid re-reading environment on every access.
    Use get_settings.cache_clear() to reload settings.
    """
    return Settings()
