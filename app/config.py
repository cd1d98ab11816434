"""
BettsTax Practice - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "BettsTax Practice"
    app_env: str = "development"
    debug: bool = True
    secret_key: str  # Required - must be set in .env
    api_version: str = "v1"

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str  # Required - must be set in .env
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # ===========================================
    # JWT AUTHENTICATION
    # ===========================================
    jwt_secret_key: str  # Required - must be set in .env
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # ===========================================
    # CORS CONFIGURATION
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://localhost:5120"

    # ===========================================
    # TAX AUTHORITY (NRA) SUBMISSION API
    # Leave base URL empty to disable electronic submission
    # ===========================================
    tax_authority_base_url: str = ""
    tax_authority_api_key: str = ""
    tax_authority_client_id: str = ""
    tax_authority_timeout_seconds: int = 30
    tax_authority_submit_endpoint: str = "/api/submit"
    tax_authority_status_endpoint: str = "/api/status"
    tax_authority_health_endpoint: str = "/health"

    @property
    def tax_authority_enabled(self) -> bool:
        """Electronic submission is only attempted when a base URL is configured."""
        return bool(self.tax_authority_base_url)

    # ===========================================
    # TAX RATES (Sierra Leone Finance Act 2024)
    # Percentages, e.g. 15 means 15%
    # ===========================================
    gst_rate_percent: float = 15.0
    annual_interest_rate_percent: float = 15.0
    income_minimum_tax_rate_percent: float = 0.5
    mat_rate_percent: float = 3.0

    # ===========================================
    # FILING RULES
    # ===========================================
    default_deadline_window_days: int = 30
    max_page_size: int = 100

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


settings = get_settings()
