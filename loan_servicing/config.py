"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LendbookConfig(BaseSettings):
    """Lendbook loan servicing configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LENDBOOK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    database_url: str = "sqlite:///lendbook.db"  # or memory://

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Loan defaults offered to new loans (percent strings)
    default_interest_rate_percent: str = "12"
    default_late_fee_percent_per_day: str = "2"
    default_preclosure_fee_percent: str = "5"

    # Business rules
    late_fee_policy: str = "ledger_only"  # ledger_only or collect_first
    loan_number_digits: int = 4

    # Dashboard windows
    dashboard_recent_loans: int = 5
    dashboard_window_days: int = 7

    # Feature flags
    enable_audit_logging: bool = True

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value

    @field_validator("late_fee_policy")
    @classmethod
    def _check_late_fee_policy(cls, value: str) -> str:
        value = value.lower()
        if value not in ("ledger_only", "collect_first"):
            raise ValueError("late_fee_policy must be 'ledger_only' or 'collect_first'")
        return value

    @field_validator("loan_number_digits")
    @classmethod
    def _check_loan_number_digits(cls, value: int) -> int:
        if value < 4:
            raise ValueError("loan_number_digits must be at least 4")
        return value


# Global configuration instance
config = LendbookConfig()


def get_config() -> LendbookConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendbookConfig:
    """Reload configuration from environment"""
    global config
    config = LendbookConfig()
    return config
