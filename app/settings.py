# ==== APPLICATION SETTINGS CONFIGURATION ==== #

"""
Application settings configuration for Procurement Hub.

This module provides centralized configuration management using Pydantic Settings
with environment variable loading and validation for all application components.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


# ==== MAIN SETTINGS CLASS ==== #


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Provides configuration for database connections, identity provider
    token verification, tenancy, observability and workflow parameters
    with validation and type safety.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore'
    )

    # --► CORE APPLICATION SETTINGS
    APP_ENV: str = "dev"
    SERVICE_NAME: str = "procurement-hub"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # --► DATABASE CONFIGURATION (SUPABASE POSTGRES)
    DATABASE_URL: str
    DIRECT_URL: str | None = None

    # --► IDENTITY PROVIDER (SUPABASE AUTH)
    SUPABASE_URL: str | None = None
    JWT_SECRET: str = "change-me-please-and-keep-long-random"
    JWT_AUDIENCE: str = "authenticated"
    JWT_ALGORITHM: str = "HS256"

    # --► TENANT CONFIGURATION
    DEFAULT_TENANT_ID: str = "default"
    REQUIRE_TENANT_HEADER: bool = False

    # --► WORKFLOW PARAMETERS
    INVOICE_TAX_RATE: Decimal = Decimal("0.10")
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # --► OBSERVABILITY CONFIGURATION
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_HEADERS: str | None = None
    OTEL_SERVICE_NAME: str | None = None
    OTEL_RESOURCE_ATTRIBUTES: str | None = None

    # --► METRICS CONFIGURATION
    PROMETHEUS_SCRAPE_PATH: str = "/metrics"


# ==== GLOBAL SETTINGS INSTANCE ==== #


# Global settings instance for application-wide access
settings = Settings()


def get_settings() -> Settings:
    """
    Get global settings instance.

    Returns:
        Settings: Global application settings instance
    """
    return settings
