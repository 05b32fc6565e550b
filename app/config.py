"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 25
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    auto_migrate: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Design System Forge API"
    api_version: str = "0.1.0"
    api_description: str = "Credit-gated AI design system generation and refinement"

    # Security
    admin_api_key: str = ""  # Required for /v1/admin/* (generate with: openssl rand -hex 32)

    # Generative model
    anthropic_api_key: str = ""
    ai_provider: str = "anthropic"
    ai_model: str = "claude-3-5-haiku-20241022"
    generation_timeout_seconds: float = 60.0
    refinement_timeout_seconds: float = 30.0
    max_ai_response_chars: int = 20000

    # Input limits
    structured_payload_max_bytes: int = 100 * 1024
    design_payload_max_bytes: int = 500 * 1024

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "design-system-forge"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres", "sqlite")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL or SQLite URL, got: {self.database_url[:20]}..."
            )

        if self.ai_provider != "anthropic":
            errors.append(f"AI_PROVIDER must be 'anthropic', got: {self.ai_provider}")

        if self.generation_timeout_seconds <= 0:
            errors.append("GENERATION_TIMEOUT_SECONDS must be positive")

        if self.refinement_timeout_seconds <= 0:
            errors.append("REFINEMENT_TIMEOUT_SECONDS must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def is_sqlite(self) -> bool:
        """True when running against SQLite (local development and tests)."""
        return self.database_url.startswith("sqlite")


# Global settings instance - validates at import time
settings = Settings()
