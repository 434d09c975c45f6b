"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
Loan economics (term, rate, delinquency threshold) live as constants in
billing_engine.loans and are not read from the environment.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .currency import Currency


class BillingConfig(BaseSettings):
    """Billing engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Business configuration
    default_currency: str = "IDR"
    demo_principal: str = "5000000"  # Decimal string, never float

    # Feature flags
    enable_events: bool = True

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value

    @field_validator("default_currency")
    @classmethod
    def _check_currency(cls, value: str) -> str:
        return Currency.from_code(value).code

    @property
    def currency(self) -> Currency:
        return Currency.from_code(self.default_currency)


# Global configuration instance
config = BillingConfig()


def get_config() -> BillingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BillingConfig:
    """Reload configuration from environment"""
    global config
    config = BillingConfig()
    return config
