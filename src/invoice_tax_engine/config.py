"""Centralized configuration management using pydantic-settings.

Configuration is loaded from environment variables with sensible defaults.
All settings can be overridden via environment variables or a .env file.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development. Override via
    environment variables (prefixed with ITE_) or .env file.

    Examples:
        ITE_LOG_LEVEL=DEBUG
        ITE_ENVIRONMENT=production
        ITE_RATE_LOOKUP_TIMEOUT=2.5
        ITE_DEFAULT_TAX_OFFICE_CODE=1471
    """

    model_config = SettingsConfigDict(
        env_prefix="ITE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Invoice Tax Engine"
    environment: Environment = Environment.DEVELOPMENT

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] | None = Field(
        default=None,
        validate_default=True,
        description="Log output format: 'json' for production, 'console' for development",
    )
    log_file: Path | None = Field(default=None, description="Optional log file path")

    # Currency
    local_currency: str = Field(default="PLN", min_length=3, max_length=3)
    nbp_api_url: str = Field(
        default="https://api.nbp.pl/api",
        description="Base URL of the National Bank of Poland rates API",
    )
    rate_lookup_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound in seconds for a single exchange rate lookup",
    )
    rate_lookback_days: int = Field(
        default=7,
        ge=0,
        le=93,
        description="How many days before the preceding day to search for a published rate",
    )

    # Income tax
    flat_tax_rate: Decimal = Field(default=Decimal("19"), ge=0, le=100)
    tax_card_amount: Decimal | None = Field(
        default=None,
        ge=0,
        description="Monthly tax card amount used when a profile does not carry one",
    )

    # Filing deadlines
    income_tax_deadline_day: int = Field(default=20, ge=1, le=28)
    vat_deadline_day: int = Field(default=25, ge=1, le=28)
    due_soon_days: int = Field(default=7, ge=0)

    # JPK
    jpk_system_name: str = "invoice-tax-engine"
    default_tax_office_code: str | None = Field(
        default=None,
        pattern=r"^\d{4}$",
        description="Tax office code used when the business profile has none",
    )

    @field_validator("local_currency", mode="before")
    @classmethod
    def normalize_local_currency(cls, v: str) -> str:
        """Store currency codes upper-case."""
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("log_format", mode="after")
    @classmethod
    def set_log_format_from_environment(cls, v: str | None, info) -> str:
        """Default to JSON logging in production."""
        if v is None:
            env = info.data.get("environment")
            if env == Environment.PRODUCTION:
                return "json"
        return v or "console"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Configured Settings instance.
    """
    return Settings()
