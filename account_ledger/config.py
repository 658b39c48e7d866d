"""
Configuration Management Module

Centralized configuration using pydantic-settings. Every value can be
overridden with a LEDGER_ prefixed environment variable or a .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


# Business rule defaults
MAXIMUM_NEGATIVE_BALANCE_ALLOWED = -1000
CREDIT_BONUS_DIVISOR = 100
TRANSFER_BONUS_DIVISOR = 150
INITIAL_BONUS_SCORE = 10


class LedgerConfig(BaseSettings):
    """Account ledger service configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "account_ledger.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    maximum_negative_balance_allowed: int = MAXIMUM_NEGATIVE_BALANCE_ALLOWED
    credit_bonus_divisor: int = CREDIT_BONUS_DIVISOR
    transfer_bonus_divisor: int = TRANSFER_BONUS_DIVISOR
    initial_bonus_score: int = INITIAL_BONUS_SCORE

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
